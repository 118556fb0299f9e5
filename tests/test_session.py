import getpass
import tempfile
import unittest

from release_deployer.local import CommandError, LocalSession


class LocalSessionTests(unittest.TestCase):
    def test_run_captures_output(self) -> None:
        result = LocalSession().run("echo hello")

        self.assertTrue(result.ok)
        self.assertEqual(result.stdout, "hello")

    def test_run_checked_raises_on_failure(self) -> None:
        session = LocalSession()

        result = session.run("echo broken >&2; exit 4")
        self.assertEqual(result.exit_status, 4)
        self.assertEqual(result.stderr, "broken")

        with self.assertRaises(CommandError) as caught:
            session.run_checked("echo broken >&2; exit 4")
        self.assertIn("broken", str(caught.exception))

    def test_environment_and_working_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            result = LocalSession().run('echo "$DEPLOY_STAGE"; pwd', cwd=tmp, env={"DEPLOY_STAGE": "qa"})

        lines = result.stdout.splitlines()
        self.assertEqual(lines[0], "qa")
        self.assertTrue(lines[1].endswith(tmp.rsplit("/", 1)[-1]))

    def test_streaming_collects_output(self) -> None:
        result = LocalSession().run("echo one; echo two", stream_output=True)

        self.assertTrue(result.ok)
        self.assertEqual(result.stdout.splitlines(), ["one", "two"])

    def test_timeout_is_reported_as_failure(self) -> None:
        result = LocalSession().run("sleep 5", timeout=1)

        self.assertFalse(result.ok)
        self.assertIn("timed out", result.stderr)

    def test_other_user_is_wrapped_in_sudo(self) -> None:
        session = LocalSession()

        self.assertEqual(session._wrap_user("id", getpass.getuser(), None), "id")
        self.assertEqual(
            session._wrap_user("id", "deploy-" + getpass.getuser(), {"RAILS_ENV": "production"}),
            f"sudo -u deploy-{getpass.getuser()} -H env RAILS_ENV=production /bin/bash -c id",
        )


if __name__ == "__main__":
    unittest.main()
