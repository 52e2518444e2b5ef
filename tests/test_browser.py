import unittest

from fakes import FakeBucket

from s3admin.browser import PrefixView, SelectionSet
from s3admin.errors import DeleteError, ListingError
from s3admin.s3 import ENTRY_DIRECTORY, ENTRY_FILE, Entry

KEYS = [
    "docs/",
    "docs/readme.md",
    "docs/guide/",
    "docs/guide/intro.md",
    "docs/guide/setup.md",
    "docs/a.txt",
    "docs/b.txt",
    "docs/c.txt",
    "root.txt",
]


def _directory(key: str) -> Entry:
    return Entry(key=key, name=key.rstrip("/").rsplit("/", 1)[-1], kind=ENTRY_DIRECTORY)


def _file(key: str) -> Entry:
    return Entry(key=key, name=key.rsplit("/", 1)[-1], kind=ENTRY_FILE)


class TestSelectionSet(unittest.TestCase):
    def test_toggle_and_order(self) -> None:
        selection = SelectionSet()
        self.assertTrue(selection.toggle("b"))
        selection.add("a")
        selection.add("b")
        self.assertEqual(selection.keys(), ["b", "a"])
        self.assertFalse(selection.toggle("b"))
        self.assertNotIn("b", selection)
        self.assertEqual(len(selection), 1)
        selection.discard("missing")
        selection.clear()
        self.assertEqual(list(selection), [])


class TestPrefixViewNavigation(unittest.IsolatedAsyncioTestCase):
    async def test_open_enter_and_up(self) -> None:
        view = PrefixView(FakeBucket(KEYS), page_size=50)

        self.assertTrue(await view.open(""))
        self.assertEqual(
            [entry.key for entry in view.visible_entries()], ["docs/", "root.txt"]
        )

        await view.enter(view.visible_entries()[0])
        self.assertEqual(view.prefix, "docs/")
        self.assertEqual(
            [entry.name for entry in view.visible_entries()],
            ["guide", "a.txt", "b.txt", "c.txt", "readme.md"],
        )
        self.assertEqual(view.breadcrumbs(), [("root", ""), ("docs", "docs/")])

        await view.up()
        self.assertEqual(view.prefix, "")
        self.assertEqual(view.breadcrumbs(), [("root", "")])

    async def test_enter_rejects_files(self) -> None:
        view = PrefixView(FakeBucket(KEYS))
        with self.assertRaises(ValueError):
            await view.enter(_file("root.txt"))

    async def test_listing_error_is_recorded(self) -> None:
        client = FakeBucket(KEYS)
        client.fail_offsets.add(0)
        view = PrefixView(client)

        self.assertFalse(await view.open("docs"))
        self.assertIn("listing failed", view.error)
        self.assertFalse(view.loading)

        client.fail_offsets.clear()
        self.assertTrue(await view.refresh())
        self.assertIsNone(view.error)

    async def test_navigation_clears_selection_but_refresh_keeps_it(self) -> None:
        view = PrefixView(FakeBucket(KEYS), page_size=2)
        await view.open("docs/")
        view.toggle_selected("docs/a.txt")

        await view.refresh()
        self.assertIn("docs/a.txt", view.selection)

        await view.set_page_size(20)
        self.assertEqual(view.page_size, 20)
        self.assertIn("docs/a.txt", view.selection)

        await view.open("docs/guide/")
        self.assertEqual(len(view.selection), 0)

    async def test_search_starts_crawl_and_spans_pages(self) -> None:
        view = PrefixView(FakeBucket(KEYS), page_size=2)
        await view.open("docs/")
        await view.store.wait_for_crawl()

        view.set_search("TXT")
        self.assertTrue(view.is_searching())
        self.assertEqual(
            [entry.name for entry in view.visible_entries()],
            ["a.txt", "b.txt", "c.txt"],
        )

        view.set_search("")
        self.assertFalse(view.is_searching())
        self.assertEqual(len(view.visible_entries()), 2)

    async def test_search_resumes_unfinished_crawl(self) -> None:
        client = FakeBucket(KEYS)
        client.fail_offsets.add(2)
        view = PrefixView(client, page_size=2)
        await view.open("docs/")
        await view.store.wait_for_crawl()
        self.assertIsNone(view.store.total_pages())

        client.fail_offsets.clear()
        view.set_search("readme")
        await view.store.wait_for_crawl()

        self.assertEqual(
            [entry.key for entry in view.visible_entries()], ["docs/readme.md"]
        )

    async def test_next_and_prev_page(self) -> None:
        view = PrefixView(FakeBucket(KEYS), page_size=2)
        await view.open("docs/")

        page = await view.next_page()
        self.assertEqual([entry.name for entry in page.entries], ["b.txt", "c.txt"])
        back = view.prev_page()
        self.assertEqual([entry.name for entry in back.entries], ["guide", "a.txt"])

    async def test_select_all_files_skips_directories(self) -> None:
        view = PrefixView(FakeBucket(KEYS), page_size=2)
        await view.open("docs/")

        self.assertEqual(view.select_all_files(), 1)
        self.assertEqual(view.selection.keys(), ["docs/a.txt"])

        view.clear_selection()
        self.assertEqual(len(view.selection), 0)


class TestPrefixViewDelete(unittest.IsolatedAsyncioTestCase):
    async def test_delete_selected_clears_selection_and_refreshes(self) -> None:
        client = FakeBucket(KEYS)
        view = PrefixView(client, page_size=50)
        await view.open("docs/")
        view.toggle_selected("docs/a.txt")
        view.toggle_selected("docs/b.txt")
        progress: list[int] = []

        result = await view.delete_selected(
            on_progress=lambda done, _total: progress.append(done)
        )

        self.assertEqual(result.summary(), "Deleted 2 of 2")
        self.assertEqual(progress, [1, 2])
        self.assertEqual(len(view.selection), 0)
        self.assertEqual(
            [entry.name for entry in view.visible_entries()],
            ["guide", "c.txt", "readme.md"],
        )

    async def test_delete_selected_with_nothing_selected(self) -> None:
        client = FakeBucket(KEYS)
        view = PrefixView(client)
        await view.open("docs/")

        result = await view.delete_selected()

        self.assertEqual(result.total, 0)
        self.assertEqual(client.delete_calls, [])

    async def test_delete_selected_reports_failures(self) -> None:
        client = FakeBucket(KEYS)
        client.fail_keys.add("docs/b.txt")
        view = PrefixView(client, bulk_concurrency=1)
        await view.open("docs/")
        view.toggle_selected("docs/a.txt")
        view.toggle_selected("docs/b.txt")

        result = await view.delete_selected()

        self.assertEqual(result.failed_count, 1)
        self.assertEqual(client.rounds, 2)
        self.assertIn("docs/b.txt", client.keys)

    async def test_delete_single_file(self) -> None:
        client = FakeBucket(KEYS)
        view = PrefixView(client)
        await view.open("docs/")
        view.toggle_selected("docs/c.txt")

        result = await view.delete_entry(_file("docs/c.txt"))

        self.assertEqual(result.succeeded, ("docs/c.txt",))
        self.assertNotIn("docs/c.txt", view.selection)
        self.assertNotIn("docs/c.txt", client.keys)

    async def test_non_recursive_directory_delete_is_rejected(self) -> None:
        client = FakeBucket(KEYS)
        view = PrefixView(client)
        await view.open("docs/")

        with self.assertRaises(DeleteError):
            await view.delete_entry(_directory("docs/guide/"))

        self.assertIn("docs/guide/intro.md", client.keys)

    async def test_recursive_directory_delete(self) -> None:
        client = FakeBucket(KEYS)
        view = PrefixView(client, recursive_concurrency=2)
        await view.open("docs/")
        view.toggle_selected("docs/guide/intro.md")
        view.toggle_selected("docs/a.txt")
        totals: list[int] = []

        result = await view.delete_entry(
            _directory("docs/guide/"), recursive=True, on_total=totals.append
        )

        self.assertEqual(totals, [3])
        self.assertEqual(result.succeeded_count, 3)
        self.assertEqual(view.selection.keys(), ["docs/a.txt"])
        self.assertNotIn("guide", [entry.name for entry in view.visible_entries()])
        self.assertIn("docs/readme.md", client.keys)

    async def test_recursive_delete_listing_failure_propagates(self) -> None:
        client = FakeBucket(KEYS)
        client.fail_flat_offsets.add(0)
        view = PrefixView(client)
        await view.open("docs/")

        with self.assertRaises(ListingError):
            await view.delete_entry(_directory("docs/guide/"), recursive=True)

        self.assertEqual(client.delete_calls, [])


if __name__ == "__main__":
    unittest.main()
