from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path, PurePosixPath
from time import monotonic
from typing import Optional

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.prompt import Confirm
from rich.table import Table
from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import (
    Button,
    Checkbox,
    DataTable,
    Footer,
    Header,
    Input,
    ProgressBar,
    Static,
)

from . import __version__
from .browser import PrefixView
from .bulk import BulkDeleteExecutor, BulkResult, RecursiveDeleteOrchestrator
from .config import (
    PAGE_SIZE_CHOICES,
    AppConfig,
    default_config_path,
    load_config,
    save_config,
)
from .errors import DeleteError, ListingError
from .paging import PageStore
from .s3 import (
    BucketClient,
    Entry,
    S3Service,
    normalize_prefix,
    parent_prefix,
)

log = logging.getLogger(__name__)

ONE_MB = 1024**2
HUNDRED_MB = 100 * ONE_MB
ONE_GB = 1024**3
TEN_GB = 10 * ONE_GB
ESC_QUIT_WINDOW_SECONDS = 1.0
CONFIRM_PREVIEW_LIMIT = 20


def format_size(size: int) -> str:
    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    value = float(size)
    for unit in units:
        if value < 1024 or unit == units[-1]:
            if unit == "B":
                return f"{int(value)} {unit}"
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} PB"


def size_style(size: int) -> str:
    if size < ONE_MB:
        return "green"
    if size < HUNDRED_MB:
        return "#ffd700"
    if size < ONE_GB:
        return "#ff8c00"
    if size < TEN_GB:
        return "red"
    return "bold red"


def format_time(value: Optional[datetime]) -> str:
    if not value:
        return ""
    return value.strftime("%Y-%m-%d %H:%M")


def kind_for_entry(entry: Entry) -> str:
    if entry.is_directory:
        return "dir"
    suffixes = PurePosixPath(entry.name).suffixes
    if suffixes and suffixes[-1].lower() == ".gz":
        suffixes = suffixes[:-1]
    if not suffixes:
        return "file"
    return suffixes[-1].lstrip(".").lower() or "file"


def size_text(entry: Entry) -> Text:
    if entry.size is None:
        return Text("")
    return Text(format_size(entry.size), style=size_style(entry.size), justify="right")


def _split_s3_path(value: str) -> tuple[str, str]:
    text = value.strip()
    if text.startswith("s3://"):
        text = text[len("s3://") :]
    text = text.lstrip("/")
    if not text:
        return "", ""
    if "/" not in text:
        return text, ""
    bucket, key = text.split("/", 1)
    return bucket, key


def _parse_s3_path(value: str) -> tuple[str, str]:
    bucket, key = _split_s3_path(value)
    return bucket, normalize_prefix(key)


def delete_info_lines(entries: list[Entry]) -> list[str]:
    lines = [f"Selected: {len(entries)}"]
    for entry in entries[:CONFIRM_PREVIEW_LIMIT]:
        lines.append(f"  {entry.name}")
    if len(entries) > CONFIRM_PREVIEW_LIMIT:
        lines.append(f"  ...and {len(entries) - CONFIRM_PREVIEW_LIMIT} more")
    return lines


class ConfirmDeleteDialog(ModalScreen[Optional[bool]]):
    """Confirm deleting one entry; dismisses with the recursive flag or None."""

    BINDINGS = [("escape", "cancel", "Cancel")]
    CSS = """
    ConfirmDeleteDialog {
        align: center middle;
    }

    #delete-dialog {
        width: 64;
        max-width: 90;
        min-width: 40;
        height: auto;
        padding: 1 2;
        border: round $panel;
        background: $panel;
        color: $text;
    }

    #delete-title {
        text-style: bold;
        margin-bottom: 1;
    }

    #delete-info {
        width: 100%;
        height: auto;
        max-height: 16;
        padding: 0 1;
        border: round $panel;
        background: $surface;
        color: $text-muted;
    }

    #delete-warning {
        color: $warning;
        margin-top: 1;
    }

    #delete-actions {
        width: 100%;
        height: auto;
        align: center middle;
        margin-top: 1;
    }

    #delete-ok {
        margin-left: 2;
    }
    """

    def __init__(
        self, title: str, info_lines: list[str], directory: bool = False
    ) -> None:
        super().__init__()
        self._title = title
        self._info_lines = info_lines
        self._directory = directory

    def compose(self) -> ComposeResult:
        with Vertical(id="delete-dialog"):
            yield Static(self._title, id="delete-title", markup=False)
            yield Static("\n".join(self._info_lines), id="delete-info", markup=False)
            if self._directory:
                yield Checkbox(
                    "Delete all contents of this folder (recursive)",
                    id="delete-recursive",
                )
                yield Static(
                    "A folder that is not empty can only be deleted recursively.",
                    id="delete-warning",
                )
            else:
                yield Static("This cannot be undone.", id="delete-warning")
            with Horizontal(id="delete-actions"):
                yield Button("Cancel", id="delete-cancel", compact=True)
                yield Button("Delete", id="delete-ok", variant="error", compact=True)

    def on_mount(self) -> None:
        self.query_one("#delete-cancel", Button).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "delete-cancel":
            self.dismiss(None)
        elif event.button.id == "delete-ok":
            self.dismiss(self._recursive())

    def _recursive(self) -> bool:
        if not self._directory:
            return False
        return bool(self.query_one("#delete-recursive", Checkbox).value)

    def action_cancel(self) -> None:
        self.dismiss(None)


class ProgressOverlay(ModalScreen[None]):
    BINDINGS = []

    CSS = """
    ProgressOverlay {
        align: center middle;
        background: $background 45%;
    }

    #progress-box {
        width: 56;
        max-width: 80;
        min-width: 34;
        height: auto;
        padding: 1 2;
        border: round $panel;
        background: $panel;
        color: $text;
    }

    #progress-title {
        width: 100%;
        text-style: bold;
        content-align: center middle;
    }

    #progress-detail {
        width: 100%;
        margin-top: 1;
        color: $text-muted;
        content-align: center middle;
    }
    """

    def __init__(self, title: str, detail: str) -> None:
        super().__init__()
        self._title = title
        self._detail = detail
        self._total: Optional[int] = None
        self._done = 0

    def compose(self) -> ComposeResult:
        with Vertical(id="progress-box"):
            yield Static(self._title, id="progress-title", markup=False)
            yield ProgressBar(total=self._total, show_eta=False, id="progress-bar")
            yield Static(self._detail, id="progress-detail", markup=False)

    def on_mount(self) -> None:
        self._sync()

    def set_total(self, total: int) -> None:
        self._total = total
        self._done = 0
        self._detail = f"0 / {total}"
        self._sync()

    def set_progress(self, done: int, total: int) -> None:
        self._total = total
        self._done = done
        self._detail = f"{done} / {total}"
        self._sync()

    def _sync(self) -> None:
        if not self.is_mounted:
            return
        bar = self.query_one("#progress-bar", ProgressBar)
        if self._total is not None:
            bar.update(total=self._total, progress=self._done)
        self.query_one("#progress-detail", Static).update(self._detail)

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()


class S3AdminApp(App):
    CSS = """
    #path-bar {
        height: 3;
        padding: 0 1;
        border: round $panel;
        background: $surface;
        color: $text;
    }

    #path-crumbs {
        width: auto;
        max-width: 60%;
        content-align: left middle;
        color: $text;
    }

    #search-input {
        width: 1fr;
        height: 1;
        margin-left: 1;
        background: $panel;
        color: $text;
        border: none;
    }

    #entries {
        height: 1fr;
        border: round $panel;
        scrollbar-gutter: stable;
    }

    #entries > .datatable--cursor {
        text-style: none;
    }

    #status {
        height: 1;
        padding: 0 1;
        background: $surface;
        color: $text-muted;
    }

    #status.error {
        color: $error;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("escape", "confirm_quit", "Quit x2"),
        ("r", "refresh", "Reload"),
        ("enter", "open", "Open"),
        ("backspace", "up", "Up"),
        ("right_square_bracket", "next_page", "Next"),
        ("left_square_bracket", "prev_page", "Prev"),
        ("space", "toggle_select", "Select"),
        ("a", "select_all", "All files"),
        ("d", "delete", "Delete"),
        ("p", "page_size", "Page size"),
        ("slash", "focus_search", "Search"),
    ]

    def __init__(
        self,
        bucket: Optional[str] = None,
        prefix: str = "",
        config: Optional[AppConfig] = None,
        service: Optional[S3Service] = None,
        config_path: Optional[Path] = None,
    ) -> None:
        super().__init__()
        self.config = config or AppConfig()
        self.config_path = config_path
        self.service = service or S3Service(
            profile=self.config.profile,
            region=self.config.region,
            endpoint_url=self.config.endpoint_url,
            public_base_url=self.config.public_base_url,
        )
        self.bucket = bucket or None
        self._initial_prefix = normalize_prefix(prefix)
        self.view: Optional[PrefixView] = None
        self.buckets: list[str] = []
        self._row_entries: list[Entry] = []
        self._quit_escape_deadline = 0.0
        self._deleting = False

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="path-bar"):
            yield Static("s3://", id="path-crumbs", markup=False)
            yield Input(
                placeholder="Search folder or file name (all loaded pages)",
                id="search-input",
            )
        yield DataTable(id="entries")
        yield Static("", id="status", markup=False)
        yield Footer()

    async def on_mount(self) -> None:
        self.title = f"s3admin {__version__}"
        self.entries_table = self.query_one("#entries", DataTable)
        self.search_input = self.query_one("#search-input", Input)
        self.path_crumbs = self.query_one("#path-crumbs", Static)
        self.status_line = self.query_one("#status", Static)
        self.entries_table.add_column("", width=2)
        self.entries_table.add_columns("Name", "Kind", "Size", "Modified")
        self.entries_table.cursor_type = "row"
        self.entries_table.zebra_stripes = True
        self.set_focus(self.entries_table)
        if self.bucket:
            self._bind_bucket(self.bucket)
            self.run_worker(self._navigate(self._initial_prefix), group="nav")
        else:
            self.run_worker(self._load_buckets(), group="nav")

    def _bind_bucket(self, bucket: str) -> None:
        self.bucket = bucket
        self.view = PrefixView(
            BucketClient(self.service, bucket),
            page_size=self.config.page_size,
            bulk_concurrency=self.config.bulk_concurrency,
            recursive_concurrency=self.config.recursive_concurrency,
        )
        self.view.store.subscribe(self._on_store_changed)

    async def _load_buckets(self) -> None:
        self._set_status("Loading buckets...")
        try:
            self.buckets = sorted(await self.service.list_buckets())
        except ListingError as exc:
            self._set_status(f"{exc}", error=True)
            self.notify(f"{exc}", severity="error")
            return
        self._render_rows()

    async def _navigate(self, prefix: str) -> None:
        if self.view is None:
            return
        self.search_input.value = ""
        self._set_status("Loading...")
        ok = await self.view.open(prefix)
        self._render_rows()
        if not ok:
            self.notify(f"{self.view.error} (press r to retry)", severity="error")

    async def _run_view_call(self, call) -> None:
        try:
            await call
        except ListingError as exc:
            self.notify(f"{exc}", severity="error")
        self._render_rows()

    def _on_store_changed(self, store: PageStore) -> None:
        if self.view is None or store is not self.view.store:
            return
        if self.view.is_searching():
            self._render_rows(keep_cursor=True)
        else:
            self._render_status()

    def _render_rows(self, keep_cursor: bool = False) -> None:
        table = self.entries_table
        row = table.cursor_row
        table.clear()
        self._fill_rows()
        if keep_cursor and table.row_count:
            table.move_cursor(row=min(row, table.row_count - 1), animate=False)

    def _fill_rows(self) -> None:
        table = self.entries_table
        self._row_entries = []
        if self.view is None:
            for name in self.buckets:
                entry = Entry(key=f"{name}/", name=name, kind="bucket")
                table.add_row("🪣", Text(name, style="bold #2f80ed"), "bucket", "", "")
                self._row_entries.append(entry)
            self.path_crumbs.update("s3://")
            self._set_status(f"{len(self.buckets)} buckets")
            return
        for entry in self.view.visible_entries():
            marker = "✓" if entry.key in self.view.selection else ""
            icon = "📁" if entry.is_directory else marker
            table.add_row(
                icon,
                Text(entry.name, style="bold" if entry.is_directory else ""),
                kind_for_entry(entry),
                size_text(entry),
                format_time(entry.modified_at),
            )
            self._row_entries.append(entry)
        crumbs = " / ".join(label for label, _ in self.view.breadcrumbs())
        self.path_crumbs.update(f"s3://{self.bucket}  {crumbs}")
        self._render_status()

    def _render_status(self) -> None:
        view = self.view
        if view is None:
            return
        if view.error:
            self._set_status(f"{view.error} (press r to retry)", error=True)
            return
        store = view.store
        parts: list[str] = []
        if view.is_searching():
            parts.append(
                f"{len(view.visible_entries())} matches in {len(store.pages)} loaded pages"
            )
            if store.crawl_active():
                parts.append("loading more...")
        else:
            total = store.total_pages()
            total_label = str(total) if total is not None else "?"
            page = store.current_page()
            count = len(page.entries) if page else 0
            parts.append(f"Page {store.current_index + 1} / {total_label}")
            parts.append(f"{count} items")
            parts.append(f"{store.page_size} per page")
        if view.selection:
            parts.append(f"{len(view.selection)} selected")
        self._set_status("  |  ".join(parts))

    def _set_status(self, text: str, error: bool = False) -> None:
        self.status_line.update(text)
        self.status_line.set_class(error, "error")

    def _entry_for_cursor(self) -> Optional[Entry]:
        row = self.entries_table.cursor_row
        if row is None or row < 0 or row >= len(self._row_entries):
            return None
        return self._row_entries[row]

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "search-input" or self.view is None:
            return
        self.view.set_search(event.value)
        self._render_rows()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "search-input":
            self.set_focus(self.entries_table)

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        self.action_open()

    def action_confirm_quit(self) -> None:
        if self.focused is self.search_input and self.search_input.value:
            self.search_input.value = ""
            self.set_focus(self.entries_table)
            return
        now = monotonic()
        if now <= self._quit_escape_deadline:
            self._quit_escape_deadline = 0.0
            self.exit()
            return
        self._quit_escape_deadline = now + ESC_QUIT_WINDOW_SECONDS
        self.notify("Press Esc again within 1 second to quit.", severity="warning")

    def action_focus_search(self) -> None:
        self.set_focus(self.search_input)

    def action_refresh(self) -> None:
        if self.view is None:
            self.run_worker(self._load_buckets(), group="nav", exclusive=True)
            return
        self.run_worker(
            self._run_view_call(self.view.refresh()), group="nav", exclusive=True
        )

    def action_open(self) -> None:
        entry = self._entry_for_cursor()
        if entry is None:
            return
        if self.view is None:
            self._bind_bucket(entry.name)
            self.run_worker(self._navigate(""), group="nav", exclusive=True)
            return
        if entry.is_directory:
            self.run_worker(self._navigate(entry.key), group="nav", exclusive=True)
        elif entry.url:
            self.notify(entry.url, title=entry.name)

    def action_up(self) -> None:
        if self.focused is self.search_input or self.view is None:
            return
        if not self.view.prefix:
            self.view = None
            self.bucket = None
            self.run_worker(self._load_buckets(), group="nav", exclusive=True)
            return
        self.run_worker(
            self._navigate(parent_prefix(self.view.prefix)),
            group="nav",
            exclusive=True,
        )

    def action_next_page(self) -> None:
        if self.view is None or self.view.is_searching():
            return
        self.run_worker(
            self._run_view_call(self.view.next_page()), group="nav", exclusive=True
        )

    def action_prev_page(self) -> None:
        if self.view is None or self.view.is_searching():
            return
        if self.view.prev_page() is not None:
            self._render_rows()

    def action_page_size(self) -> None:
        if self.view is None:
            return
        current = self.view.page_size
        larger = [size for size in PAGE_SIZE_CHOICES if size > current]
        next_size = larger[0] if larger else PAGE_SIZE_CHOICES[0]
        self.notify(f"{next_size} items per page", severity="information")
        self.config = self.config.merged(page_size=next_size)
        if self.config_path is not None:
            stored = load_config(self.config_path)
            save_config(stored.merged(page_size=next_size), self.config_path)
        self.run_worker(
            self._run_view_call(self.view.set_page_size(next_size)),
            group="nav",
            exclusive=True,
        )

    def action_toggle_select(self) -> None:
        entry = self._entry_for_cursor()
        # Only files are selectable; folders go through the recursive delete.
        if self.view is None or entry is None or entry.is_directory:
            return
        self.view.toggle_selected(entry.key)
        self._render_rows(keep_cursor=True)

    def action_select_all(self) -> None:
        if self.view is None:
            return
        files = self.view.visible_files()
        if files and all(entry.key in self.view.selection for entry in files):
            self.view.clear_selection()
        else:
            self.view.select_all_files()
        self._render_rows(keep_cursor=True)

    def action_delete(self) -> None:
        if self.view is None:
            return
        if self._deleting:
            self.notify("A delete is already running.", severity="warning")
            return
        self.run_worker(self._delete_flow(), group="delete", exclusive=True)

    async def _delete_flow(self) -> None:
        self._deleting = True
        try:
            await self._confirm_and_delete()
        finally:
            self._deleting = False

    async def _confirm_and_delete(self) -> None:
        view = self.view
        if view is None:
            return
        if view.selection:
            by_key = {entry.key: entry for entry in view.store.all_entries()}
            selected = [
                by_key.get(key) or Entry(key=key, name=key, kind="file")
                for key in view.selection.keys()
            ]
            confirmed = await self.push_screen_wait(
                ConfirmDeleteDialog(
                    f"Delete {len(selected)} selected item(s)?",
                    delete_info_lines(selected),
                )
            )
            if confirmed is None:
                return
            overlay = ProgressOverlay("Deleting selection", "")
            self.push_screen(overlay)
            await asyncio.sleep(0)
            overlay.set_total(len(selected))
            try:
                result = await view.delete_selected(on_progress=overlay.set_progress)
            finally:
                self._close_overlay(overlay)
            self._report_result(result)
            return

        entry = self._entry_for_cursor()
        if entry is None:
            self.notify("Select a file or folder to delete.", severity="warning")
            return
        kind = "folder" if entry.is_directory else "file"
        recursive = await self.push_screen_wait(
            ConfirmDeleteDialog(
                f"Delete this {kind}?",
                [entry.key],
                directory=entry.is_directory,
            )
        )
        if recursive is None:
            return
        overlay = ProgressOverlay(f"Deleting {entry.name}", "Listing files...")
        self.push_screen(overlay)
        await asyncio.sleep(0)
        try:
            result = await view.delete_entry(
                entry,
                recursive=recursive,
                on_total=overlay.set_total,
                on_progress=overlay.set_progress,
            )
        except DeleteError as exc:
            message = f"{exc}"
            if message == "not-empty":
                message = "Folder is not empty; enable recursive delete."
            self.notify(message, severity="error")
            return
        except ListingError as exc:
            self.notify(f"{exc}", severity="error")
            return
        finally:
            self._close_overlay(overlay)
        self._report_result(result)

    def _close_overlay(self, overlay: ProgressOverlay) -> None:
        if self.screen is overlay:
            self.pop_screen()

    def _report_result(self, result: BulkResult) -> None:
        severity = "warning" if result.failed_count else "information"
        self.notify(result.summary(), severity=severity)
        self._render_rows()


COMMANDS = ("browse", "ls", "rm")


def _setup_logging(verbosity: int, log_file: Optional[str] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        filename=log_file,
    )


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--profile", help="AWS profile to use")
    common.add_argument("--region", help="Region override for the S3 client")
    common.add_argument(
        "--endpoint-url",
        help="S3-compatible endpoint (Cloudflare R2, MinIO, ...)",
    )
    common.add_argument("--public-base-url", help="Public URL prefix for objects")
    common.add_argument("--page-size", type=int, help="Entries per listing page")
    common.add_argument("--config", help="Path to config.json")
    common.add_argument(
        "-v", "--verbose", action="count", default=0, help="-v info, -vv debug"
    )
    common.add_argument("--log-file", help="Write log records to this file")

    parser = argparse.ArgumentParser(
        prog="s3admin",
        description="Browse and bulk-delete objects in S3-compatible storage",
    )
    parser.add_argument("--version", action="version", version=__version__)
    subparsers = parser.add_subparsers(dest="command")

    browse = subparsers.add_parser("browse", parents=[common], help="Open the browser")
    browse.add_argument("path", nargs="?", help="bucket/prefix to open")

    ls = subparsers.add_parser("ls", parents=[common], help="List one prefix")
    ls.add_argument("path", help="bucket/prefix")
    ls.add_argument("--all", action="store_true", help="List every page")

    rm = subparsers.add_parser("rm", parents=[common], help="Delete keys")
    rm.add_argument("paths", nargs="+", help="bucket/key or bucket/folder/")
    rm.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        help="Delete folders together with everything under them",
    )
    rm.add_argument("-y", "--yes", action="store_true", help="Do not ask")
    rm.add_argument(
        "--concurrency",
        type=int,
        help="Parallel delete calls for files (folders use at least this many)",
    )
    return parser


def _config_path(args: argparse.Namespace) -> Path:
    if args.config:
        return Path(args.config).expanduser()
    return default_config_path()


def _resolve_config(args: argparse.Namespace) -> AppConfig:
    config = load_config(_config_path(args))
    return config.merged(
        profile=args.profile,
        region=args.region,
        endpoint_url=args.endpoint_url,
        public_base_url=args.public_base_url,
        page_size=args.page_size,
    )


def _service_for(config: AppConfig) -> S3Service:
    return S3Service(
        profile=config.profile,
        region=config.region,
        endpoint_url=config.endpoint_url,
        public_base_url=config.public_base_url,
    )


def _run_browser_command(
    config: AppConfig, path: Optional[str], config_path: Optional[Path] = None
) -> int:
    bucket, prefix = _parse_s3_path(path) if path else ("", "")
    app = S3AdminApp(
        bucket=bucket or None, prefix=prefix, config=config, config_path=config_path
    )
    app.run()
    return 0


async def _list_pages(store: PageStore, every_page: bool) -> list[Entry]:
    await store.load_first()
    if every_page:
        await store.wait_for_crawl()
        # A failed crawl leaves the frontier open; walk the rest in the foreground.
        while store.current_index + 1 < len(store.pages) or store.frontier_cursor:
            if await store.go_next() is None:
                break
        return [entry for page in store.pages for entry in page.entries]
    page = store.current_page()
    return list(page.entries) if page else []


def _run_ls_command(config: AppConfig, path: str, every_page: bool) -> int:
    console = Console()
    bucket, prefix = _parse_s3_path(path)
    if not bucket:
        console.print("[red]Path must include a bucket (bucket/prefix/)[/red]")
        return 2
    store = PageStore(BucketClient(_service_for(config), bucket), prefix, config.page_size)
    try:
        entries = asyncio.run(_list_pages(store, every_page))
    except ListingError as exc:
        console.print(f"[red]{exc}[/red]")
        return 1
    table = Table(title=f"s3://{bucket}/{prefix}", show_lines=False)
    table.add_column("Name")
    table.add_column("Kind")
    table.add_column("Size", justify="right")
    table.add_column("Modified")
    for entry in entries:
        table.add_row(
            Text(entry.name, style="bold" if entry.is_directory else ""),
            kind_for_entry(entry),
            size_text(entry),
            format_time(entry.modified_at),
        )
    console.print(table)
    if not every_page and store.has_next():
        console.print("[dim]More entries available; use --all to list every page.[/dim]")
    return 0


async def _remove(
    client: BucketClient,
    files: list[str],
    directories: list[str],
    recursive: bool,
    config: AppConfig,
    concurrency: Optional[int],
    console: Console,
) -> list[BulkResult]:
    results: list[BulkResult] = []
    with Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
    ) as progress:
        if files:
            task = progress.add_task("Deleting files", total=len(files))
            executor = BulkDeleteExecutor(client)
            results.append(
                await executor.run(
                    files,
                    concurrency or config.bulk_concurrency,
                    on_progress=lambda done, _total: progress.update(task, completed=done),
                )
            )
        for directory in directories:
            if not recursive:
                try:
                    await client.delete(directory, recursive=False)
                except (DeleteError, ListingError) as exc:
                    results.append(BulkResult(total=1, failed={directory: f"{exc}"}))
                    continue
                results.append(BulkResult(total=1, succeeded=(directory,)))
                continue
            # Unknown total while enumerating.
            task = progress.add_task(f"Deleting {directory}", total=None)
            orchestrator = RecursiveDeleteOrchestrator(
                client,
                concurrency_limit=max(concurrency or 0, config.recursive_concurrency),
            )
            try:
                result = await orchestrator.run(
                    directory,
                    on_total=lambda total, task=task: progress.update(task, total=total),
                    on_progress=lambda done, _total, task=task: progress.update(
                        task, completed=done
                    ),
                )
            except ListingError as exc:
                log.warning("listing %s failed: %s", directory, exc)
                progress.update(task, total=1)
                result = BulkResult(total=1, failed={directory: f"{exc}"})
            results.append(result)
    return results


def _run_rm_command(
    config: AppConfig,
    paths: list[str],
    recursive: bool,
    assume_yes: bool,
    concurrency: Optional[int],
) -> int:
    console = Console()
    targets: dict[str, tuple[list[str], list[str]]] = {}
    for path in paths:
        bucket, key = _split_s3_path(path)
        if not bucket or not key:
            console.print(f"[red]Not an object path: {path}[/red]")
            return 2
        files, directories = targets.setdefault(bucket, ([], []))
        if key.endswith("/"):
            directories.append(key)
        else:
            files.append(key)
    if concurrency is not None and concurrency < 1:
        console.print("[red]--concurrency must be at least 1[/red]")
        return 2
    if not assume_yes:
        count = sum(len(files) + len(dirs) for files, dirs in targets.values())
        suffix = " (folders recursively)" if recursive else ""
        if not Confirm.ask(
            f"Delete {count} path(s){suffix}?", console=console, default=False
        ):
            console.print("Aborted.")
            return 0
    service = _service_for(config)
    failed = 0
    for bucket, (files, directories) in targets.items():
        results = asyncio.run(
            _remove(
                BucketClient(service, bucket),
                files,
                directories,
                recursive,
                config,
                concurrency,
                console,
            )
        )
        for result in results:
            failed += result.failed_count
            for key, message in result.failed.items():
                console.print(f"[red]s3://{bucket}/{key}: {message}[/red]")
            console.print(result.summary())
    return 1 if failed else 0


def main(argv: Optional[list[str]] = None) -> int:
    args_list = list(sys.argv[1:] if argv is None else argv)
    if not args_list or (
        args_list[0] not in COMMANDS and args_list[0] not in ("-h", "--help", "--version")
    ):
        args_list.insert(0, "browse")
    parser = _build_parser()
    args = parser.parse_args(args_list)
    _setup_logging(args.verbose, args.log_file)
    config = _resolve_config(args)
    log.debug("running %s with %s", args.command, config)
    if args.command == "ls":
        return _run_ls_command(config, args.path, args.all)
    if args.command == "rm":
        return _run_rm_command(
            config, args.paths, args.recursive, args.yes, args.concurrency
        )
    return _run_browser_command(config, args.path, _config_path(args))


if __name__ == "__main__":
    raise SystemExit(main())
