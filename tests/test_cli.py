import unittest
from unittest.mock import patch

from fakes import FakeBucket

from s3admin.app import _run_ls_command, _run_rm_command, main
from s3admin.config import AppConfig, default_config_path


class TestCliDispatch(unittest.TestCase):
    def setUp(self) -> None:
        patcher = patch("s3admin.app.load_config", return_value=AppConfig())
        self.load_config = patcher.start()
        self.addCleanup(patcher.stop)
        patcher = patch("s3admin.app._setup_logging")
        self.setup_logging = patcher.start()
        self.addCleanup(patcher.stop)

    def test_default_cli_runs_tui(self) -> None:
        with patch("s3admin.app._run_browser_command", return_value=0) as run_browser:
            code = main([])

        run_browser.assert_called_once_with(AppConfig(), None, default_config_path())
        self.assertEqual(code, 0)

    def test_path_shortcut_opens_browser_to_path(self) -> None:
        with patch("s3admin.app._run_browser_command", return_value=0) as run_browser:
            code = main(["s3://media/videos"])

        run_browser.assert_called_once_with(
            AppConfig(), "s3://media/videos", default_config_path()
        )
        self.assertEqual(code, 0)

    def test_options_override_config(self) -> None:
        with patch("s3admin.app._run_browser_command", return_value=0) as run_browser:
            main(
                [
                    "--profile",
                    "r2",
                    "--endpoint-url",
                    "https://acct.r2.cloudflarestorage.com",
                    "--page-size",
                    "20",
                    "-vv",
                    "media",
                ]
            )

        config, path, _config_path = run_browser.call_args.args
        self.assertEqual(path, "media")
        self.assertEqual(config.profile, "r2")
        self.assertEqual(config.endpoint_url, "https://acct.r2.cloudflarestorage.com")
        self.assertEqual(config.page_size, 20)
        self.setup_logging.assert_called_once_with(2, None)

    def test_ls_subcommand_dispatches(self) -> None:
        with patch("s3admin.app._run_ls_command", return_value=0) as run_ls:
            code = main(["ls", "media/videos", "--all"])

        run_ls.assert_called_once_with(AppConfig(), "media/videos", True)
        self.assertEqual(code, 0)

    def test_rm_subcommand_dispatches(self) -> None:
        with patch("s3admin.app._run_rm_command", return_value=1) as run_rm:
            code = main(["rm", "media/a.txt", "media/docs/", "-r", "-y", "--concurrency", "4"])

        run_rm.assert_called_once_with(
            AppConfig(), ["media/a.txt", "media/docs/"], True, True, 4
        )
        self.assertEqual(code, 1)

    def test_config_flag_is_used(self) -> None:
        with patch("s3admin.app._run_browser_command", return_value=0) as run_browser:
            main(["browse", "--config", "/tmp/s3admin-test.json"])

        path = self.load_config.call_args.args[0]
        self.assertEqual(str(path), "/tmp/s3admin-test.json")
        self.assertEqual(str(run_browser.call_args.args[2]), "/tmp/s3admin-test.json")


class TestCliCommands(unittest.TestCase):
    def test_ls_lists_every_page(self) -> None:
        client = FakeBucket([f"videos/{index}.mp4" for index in range(5)])
        with patch("s3admin.app.BucketClient", return_value=client):
            code = _run_ls_command(AppConfig(page_size=2), "media/videos", True)

        self.assertEqual(code, 0)
        self.assertIn(("videos/", "4", 2), client.page_calls)

    def test_ls_first_page_only(self) -> None:
        client = FakeBucket([f"videos/{index}.mp4" for index in range(5)])
        with patch("s3admin.app.BucketClient", return_value=client):
            code = _run_ls_command(AppConfig(page_size=2), "media/videos", False)

        self.assertEqual(code, 0)
        self.assertEqual(client.page_calls[0], ("videos/", None, 2))

    def test_ls_requires_bucket(self) -> None:
        self.assertEqual(_run_ls_command(AppConfig(), "s3://", False), 2)

    def test_ls_listing_error(self) -> None:
        client = FakeBucket(["a.txt"])
        client.fail_offsets.add(0)
        with patch("s3admin.app.BucketClient", return_value=client):
            self.assertEqual(_run_ls_command(AppConfig(), "media", False), 1)

    def test_rm_files_and_recursive_folder(self) -> None:
        client = FakeBucket(["a.txt", "b.txt", "docs/", "docs/x.md", "keep.txt"])
        with patch("s3admin.app.BucketClient", return_value=client):
            code = _run_rm_command(
                AppConfig(),
                ["media/a.txt", "s3://media/b.txt", "media/docs/"],
                recursive=True,
                assume_yes=True,
                concurrency=None,
            )

        self.assertEqual(code, 0)
        self.assertEqual(client.keys, {"keep.txt"})

    def test_rm_non_empty_folder_without_recursive_fails(self) -> None:
        client = FakeBucket(["docs/", "docs/x.md"])
        with patch("s3admin.app.BucketClient", return_value=client):
            code = _run_rm_command(
                AppConfig(), ["media/docs/"], False, True, None
            )

        self.assertEqual(code, 1)
        self.assertEqual(client.keys, {"docs/", "docs/x.md"})

    def test_rm_reports_failures(self) -> None:
        client = FakeBucket(["a.txt", "b.txt"])
        client.fail_keys.add("b.txt")
        with patch("s3admin.app.BucketClient", return_value=client):
            code = _run_rm_command(
                AppConfig(), ["media/a.txt", "media/b.txt"], False, True, 1
            )

        self.assertEqual(code, 1)
        self.assertEqual(client.keys, {"b.txt"})

    def test_rm_listing_failure_keeps_going(self) -> None:
        client = FakeBucket(["a.txt", "bad/x.md", "good/y.md", "good/z.md"])
        client.fail_flat_prefixes.add("bad/")
        with patch("s3admin.app.BucketClient", return_value=client), patch(
            "s3admin.app.Console.print"
        ) as printed:
            code = _run_rm_command(
                AppConfig(),
                ["media/a.txt", "media/bad/", "media/good/"],
                recursive=True,
                assume_yes=True,
                concurrency=None,
            )

        self.assertEqual(code, 1)
        self.assertEqual(client.keys, {"bad/x.md"})
        lines = [str(call.args[0]) for call in printed.call_args_list if call.args]
        self.assertIn("Deleted 1 of 1", lines)
        self.assertIn("Deleted 2 of 2", lines)
        self.assertIn("Deleted 0 of 1 (1 failed)", lines)
        self.assertTrue(any("bad/" in line and "failed" in line for line in lines))

    def test_rm_concurrency_does_not_narrow_recursive_delete(self) -> None:
        client = FakeBucket([f"logs/{index:02d}.txt" for index in range(30)])
        with patch("s3admin.app.BucketClient", return_value=client):
            code = _run_rm_command(AppConfig(), ["media/logs/"], True, True, 2)

        self.assertEqual(code, 0)
        self.assertEqual(client.keys, set())
        self.assertEqual(client.max_in_flight, 20)

    def test_rm_declined_prompt_deletes_nothing(self) -> None:
        client = FakeBucket(["a.txt"])
        with patch("s3admin.app.BucketClient", return_value=client), patch(
            "s3admin.app.Confirm.ask", return_value=False
        ) as ask:
            code = _run_rm_command(AppConfig(), ["media/a.txt"], False, False, None)

        ask.assert_called_once()
        self.assertEqual(code, 0)
        self.assertEqual(client.delete_calls, [])

    def test_rm_rejects_bucket_only_paths(self) -> None:
        self.assertEqual(
            _run_rm_command(AppConfig(), ["media"], False, True, None), 2
        )

    def test_rm_rejects_invalid_concurrency(self) -> None:
        self.assertEqual(
            _run_rm_command(AppConfig(), ["media/a.txt"], False, True, 0), 2
        )


if __name__ == "__main__":
    unittest.main()
