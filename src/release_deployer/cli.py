"""Command-line interface for release-deployer."""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass
from typing import Optional

from .config import AppConfig, load_config
from .errors import DeploymentError, RollbackError
from .utils.logging import configure_logging
from .workflow import DeploymentWorkflow, build_target, describe_failure


@dataclass
class CLIContext:
    """Context captured from CLI arguments."""

    config: AppConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="release-deployer",
        description="Deploy a git revision as an RVM-backed release with atomic cutover.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a JSON config file overriding defaults.",
    )
    parser.add_argument(
        "--deploy-to", type=str, default=None,
        help="Deploy target directory (holds releases/, shared/ and current).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    deploy_parser = subparsers.add_parser(
        "deploy", help="Deploy a revision, or do nothing if it is already live"
    )
    deploy_parser.add_argument("--repo", help="Git repository URL")
    deploy_parser.add_argument("--revision", help="Branch, tag or commit to deploy")
    deploy_parser.add_argument("--runtime", help="Runtime specifier, e.g. 3.0.0@app")
    deploy_parser.add_argument("--user", help="User that owns the deploy target")
    deploy_parser.add_argument(
        "--migrate", action="store_true", default=None,
        help="Run database migrations",
    )
    deploy_parser.add_argument(
        "--precompile-assets", action="store_true", default=None,
        help="Precompile assets before cutover",
    )
    deploy_parser.add_argument(
        "--json", action="store_true", dest="as_json",
        help="Print the deployment result as JSON",
    )

    subparsers.add_parser(
        "rollback", help="Switch back to the previous release and discard the current one"
    )
    subparsers.add_parser("status", help="Show the current release and the releases on disk")

    return parser


def _build_context(args: argparse.Namespace) -> CLIContext:
    config = load_config(args.config)
    if args.deploy_to:
        config.deployment.deploy_to = args.deploy_to
    configure_logging(config.logging.level)
    return CLIContext(config=config)


def handle_deploy_command(args: argparse.Namespace, workflow: DeploymentWorkflow, context: CLIContext) -> int:
    target = build_target(
        context.config,
        repo=args.repo,
        revision=args.revision,
        runtime=args.runtime,
        user=args.user,
        migrate=args.migrate,
        precompile_assets=args.precompile_assets,
    )
    try:
        result = workflow.deploy(target)
    except RollbackError as exc:
        print(f"❌ {describe_failure(exc, workflow.last_result)}")
        print(f"⚠️  Rollback incomplete, manual cleanup needed: {exc.cleanup_errors}")
        return 1
    except DeploymentError as exc:
        print(f"❌ {describe_failure(exc, workflow.last_result)}")
        print("   current release unchanged")
        return 1

    if args.as_json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"✅ {result.action.value}: {result.decision.release_path}")
    return 0


def handle_status_command(workflow: DeploymentWorkflow, context: CLIContext) -> int:
    deploy_to = context.config.deployment.deploy_to
    if not deploy_to:
        raise ValueError("Missing deployment values: deploy_to")
    status = workflow.status(deploy_to)

    print(f"\n{'='*60}")
    print(f"📁 Deploy target: {status.deploy_to}")
    print(f"🔗 Current:       {status.current.name if status.current else 'unset'}")
    print(f"💎 Runtime:       {status.current_runtime or 'unknown'}")
    print(f"{'='*60}")
    for release in reversed(status.releases):
        marker = "→" if status.current == release else " "
        print(f" {marker} {release.name}")
    if status.problem:
        print(f"\n⚠️  {status.problem}")
        return 1
    return 0


def dispatch_command(args: argparse.Namespace) -> int:
    context = _build_context(args)
    workflow = DeploymentWorkflow(config=context.config)

    if args.command == "deploy":
        return handle_deploy_command(args, workflow, context)

    if args.command == "status":
        return handle_status_command(workflow, context)

    if args.command == "rollback":
        target = build_target(context.config)
        try:
            previous = workflow.rollback(target)
        except DeploymentError as exc:
            print(f"❌ {exc}")
            return 1
        print(f"⏪ current -> {previous.name}")
        return 0

    raise ValueError(f"Unsupported command: {args.command}")


def run_cli(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return dispatch_command(args)
