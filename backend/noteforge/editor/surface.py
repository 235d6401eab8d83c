"""
NoteForge Backend - Editor Surface
===================================

What:  The rich-text document the user edits, held as an HTML tree
       (BeautifulSoup), with the formatting commands of the toolbar.
How:   The document is a flat list of top-level blocks (p, h1-h3, ul, ol,
       blockquote, pre, img). A selection is a block index plus a character
       range inside that block's text. Every command edits the tree, then the
       tree is re-parsed from its own serialization so adjacent text nodes
       merge and later commands see a clean structure.

Commands are toggles: applying one twice leaves the markup as it was.

    marks:  bold italic strike code highlight
    blocks: heading1 heading2 heading3 bullet_list ordered_list task_list
            blockquote code_block
"""

import logging
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Tuple

import markdown
from bs4 import BeautifulSoup, NavigableString, Tag

logger = logging.getLogger(__name__)

EMPTY_DOCUMENT = "<p></p>"

# command → (canonical tag, tags that count as the same mark)
MARKS: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "bold": ("strong", ("strong", "b")),
    "italic": ("em", ("em", "i")),
    "strike": ("s", ("s", "strike", "del")),
    "code": ("code", ("code",)),
    "highlight": ("mark", ("mark",)),
}

HEADINGS = {"heading1": "h1", "heading2": "h2", "heading3": "h3"}
WRAPPERS = ("bullet_list", "ordered_list", "task_list", "blockquote")
BLOCK_COMMANDS = tuple(HEADINGS) + WRAPPERS + ("code_block",)
COMMANDS = tuple(MARKS) + BLOCK_COMMANDS

TEXTBLOCK_TAGS = {"p", "h1", "h2", "h3", "h4", "h5", "h6"}
BLOCK_TAGS = TEXTBLOCK_TAGS | {
    "ul", "ol", "blockquote", "pre", "img", "hr", "table", "div", "figure",
}

MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "sane_lists"]

HISTORY_LIMIT = 100


class Uploader(Protocol):
    """Stores an image and returns the URL the document should reference."""

    def upload(self, data: bytes, filename: Optional[str], mime_type: str) -> Awaitable[str]:
        ...


def _block_kind(block: Tag) -> str:
    name = block.name
    for command, tag in HEADINGS.items():
        if name == tag:
            return command
    if name == "ul":
        return "task_list" if block.get("data-type") == "taskList" else "bullet_list"
    if name == "ol":
        return "ordered_list"
    if name == "blockquote":
        return "blockquote"
    if name == "pre":
        return "code_block"
    return "paragraph" if name == "p" else name


def _text_nodes(block: Tag) -> List[Tuple[NavigableString, int]]:
    """Text nodes of `block` in document order with their start offsets."""
    nodes = []
    offset = 0
    for node in block.descendants:
        if type(node) is NavigableString:
            nodes.append((node, offset))
            offset += len(node)
    return nodes


def _inside(node, block: Tag, names: Tuple[str, ...]) -> bool:
    parent = node.parent
    while parent is not None and parent is not block:
        if parent.name in names:
            return True
        parent = parent.parent
    return False


class EditorSurface:
    """
    Args:
        uploader:  Image store used by drop and paste (see FileServiceUploader)
        on_update: Called with the serialized HTML after every content change
    """

    def __init__(
        self,
        uploader: Optional[Uploader] = None,
        on_update: Optional[Callable[[str], None]] = None,
    ):
        self.uploader = uploader
        self.on_update = on_update
        self._soup = BeautifulSoup("", "html.parser")
        self._undo: List[str] = []
        self._redo: List[str] = []
        self.selection: Tuple[int, int, int] = (0, 0, 0)

    # ── Document access ───────────────────────────────────────────────────

    @property
    def blocks(self) -> List[Tag]:
        return [node for node in self._soup.contents if isinstance(node, Tag)]

    def get_html(self) -> str:
        blocks = self.blocks
        if not blocks:
            return EMPTY_DOCUMENT
        return "".join(str(block) for block in blocks)

    def get_text(self) -> str:
        return "\n".join(block.get_text() for block in self.blocks)

    def is_empty(self) -> bool:
        return not self.get_text().strip() and not self._soup.find("img")

    def set_content(self, html: str, emit_update: bool = False) -> None:
        """Replaces the whole document and moves the selection to its start."""
        self._replace(html or "", emit_update=emit_update, record=emit_update)
        self.selection = (0, 0, 0)

    def replace_from_markdown(self, markdown_text: str, record: bool = True) -> None:
        """Renders markdown to HTML and replaces the document with it."""
        html = markdown.markdown(markdown_text, extensions=MARKDOWN_EXTENSIONS)
        self._replace(html, emit_update=True, record=record)
        self.selection = (0, 0, 0)

    # ── Selection ─────────────────────────────────────────────────────────

    def select(self, block: int, start: int = 0, end: Optional[int] = None) -> None:
        """
        Selects characters [start, end) of the block's text. `end` defaults
        to the end of the block; offsets are clamped to the text.
        """
        blocks = self.blocks
        if not blocks:
            self.selection = (0, 0, 0)
            return
        if block < 0 or block >= len(blocks):
            raise ValueError(f"Block index {block} out of range (0..{len(blocks) - 1})")
        length = len(blocks[block].get_text())
        if end is None:
            end = length
        start, end = sorted((max(0, min(start, length)), max(0, min(end, length))))
        self.selection = (block, start, end)

    # ── Commands ──────────────────────────────────────────────────────────

    def run(self, command: str) -> bool:
        """Toggles a mark or block command; returns whether the document changed."""
        if command not in COMMANDS:
            raise ValueError(f"Unknown editor command '{command}'")
        if not self.blocks:
            self._replace(EMPTY_DOCUMENT, emit_update=False, record=False)

        before = self.get_html()
        if command in MARKS:
            self._toggle_mark(command)
        else:
            self._toggle_block(command)
        return self._commit(before)

    def set_link(self, href: str) -> bool:
        """Links the selection to `href`; an empty href removes intersecting links."""
        if not self.blocks:
            return False
        before = self.get_html()
        index, start, end = self.selection
        block = self.blocks[index]
        self._unwrap_intersecting(block, ("a",), start, end)
        self._reparse()
        if href and start < end:
            self._wrap_range(index, "a", ("a",), start, end, {"href": href})
        return self._commit(before)

    def insert_image(self, src: str, alt: str = "") -> None:
        """Inserts an image block after the selected block and selects it."""
        before = self.get_html()
        image = self._soup.new_tag("img", src=src, alt=alt)
        blocks = self.blocks
        if not blocks or self.is_empty():
            self._soup.clear()
            self._soup.append(image)
            index = 0
        else:
            index = min(self.selection[0], len(blocks) - 1)
            blocks[index].insert_after(image)
            index += 1
        self._reparse()
        self.selection = (index, 0, 0)
        self._commit(before)

    async def handle_drop(self, data: bytes, filename: str, mime_type: str) -> bool:
        """Image files dropped on the editor are uploaded, then inserted."""
        if not self._accepts(mime_type):
            return False
        url = await self.uploader.upload(data, filename, mime_type)
        self.insert_image(url, alt=filename)
        return True

    async def handle_paste(self, data: bytes, mime_type: str) -> bool:
        """Pasted image data is uploaded, then inserted."""
        if not self._accepts(mime_type):
            return False
        url = await self.uploader.upload(data, None, mime_type)
        self.insert_image(url, alt="Pasted image")
        return True

    def undo(self) -> bool:
        if not self._undo:
            return False
        self._redo.append(self.get_html())
        self._restore(self._undo.pop())
        return True

    def redo(self) -> bool:
        if not self._redo:
            return False
        self._undo.append(self.get_html())
        self._restore(self._redo.pop())
        return True

    def toolbar_state(self) -> Dict[str, bool]:
        """Active flag of every toggle for the current selection."""
        state = {command: self.is_active(command) for command in COMMANDS}
        state["link"] = self._selection_has("a")
        return state

    def is_active(self, command: str) -> bool:
        blocks = self.blocks
        if not blocks:
            return False
        if command in MARKS:
            return self._mark_active(MARKS[command][1])
        block = blocks[min(self.selection[0], len(blocks) - 1)]
        return _block_kind(block) == command

    # ── Marks ─────────────────────────────────────────────────────────────

    def _toggle_mark(self, command: str) -> None:
        tag, names = MARKS[command]
        index, start, end = self.selection
        if start == end:
            return
        if self._mark_active(names):
            block = self.blocks[index]
            leftovers = self._unwrap_intersecting(block, names, start, end)
            self._reparse()
            for left, right in leftovers:
                self._wrap_range(index, tag, names, left, right)
        else:
            self._wrap_range(index, tag, names, start, end)

    def _mark_active(self, names: Tuple[str, ...]) -> bool:
        index, start, end = self.selection
        block = self.blocks[index]
        nodes = _text_nodes(block)
        if not nodes:
            return False
        if start == end:
            # Collapsed: marks of the character before the cursor
            position = max(start - 1, 0)
            for node, offset in nodes:
                if offset <= position < offset + len(node):
                    return _inside(node, block, names)
            return False
        covered = [
            node for node, offset in nodes
            if offset < end and offset + len(node) > start
        ]
        return bool(covered) and all(_inside(node, block, names) for node in covered)

    def _selection_has(self, name: str) -> bool:
        blocks = self.blocks
        if not blocks:
            return False
        index, start, end = self.selection
        block = blocks[index]
        for node, offset in _text_nodes(block):
            overlaps = offset < end and offset + len(node) > start
            touches = start == end and offset <= max(start - 1, 0) < offset + len(node)
            if (overlaps or touches) and _inside(node, block, (name,)):
                return True
        return False

    def _wrap_range(
        self,
        index: int,
        tag: str,
        names: Tuple[str, ...],
        start: int,
        end: int,
        attrs: Optional[Dict[str, str]] = None,
    ) -> None:
        block = self.blocks[index]
        for node, offset in _text_nodes(block):
            node_end = offset + len(node)
            if node_end <= start or offset >= end or _inside(node, block, names):
                continue
            text = str(node)
            left = max(start, offset) - offset
            right = min(end, node_end) - offset
            wrapper = self._soup.new_tag(tag, attrs=dict(attrs or {}))
            wrapper.string = text[left:right]
            node.replace_with(wrapper)
            if text[:left]:
                wrapper.insert_before(NavigableString(text[:left]))
            if text[right:]:
                wrapper.insert_after(NavigableString(text[right:]))
        self._merge_adjacent(block, tag)
        self._reparse()

    @staticmethod
    def _unwrap_intersecting(
        block: Tag,
        names: Tuple[str, ...],
        start: int,
        end: int,
    ) -> List[Tuple[int, int]]:
        """
        Unwraps every mark element touching [start, end) and returns the
        parts of their ranges that lay outside the selection.
        """
        nodes = _text_nodes(block)
        targets = []
        for element in block.find_all(list(names)):
            first = next(
                (
                    offset for node, offset in nodes
                    if any(parent is element for parent in node.parents)
                ),
                None,
            )
            if first is None:
                continue
            last = first + len(element.get_text())
            if last <= start or first >= end:
                continue
            targets.append((element, first, last))

        leftovers = []
        for element, first, last in targets:
            if first < start:
                leftovers.append((first, start))
            if last > end:
                leftovers.append((end, last))
            element.unwrap()
        return leftovers

    @staticmethod
    def _merge_adjacent(block: Tag, tag: str) -> None:
        for element in block.find_all(tag):
            if element.parent is None:
                continue
            sibling = element.next_sibling
            while (
                isinstance(sibling, Tag)
                and sibling.name == tag
                and sibling.attrs == element.attrs
            ):
                for child in list(sibling.contents):
                    element.append(child.extract())
                following = sibling.next_sibling
                sibling.decompose()
                sibling = following

    # ── Blocks ────────────────────────────────────────────────────────────

    def _toggle_block(self, command: str) -> None:
        index = self.selection[0]
        block = self.blocks[index]
        active = _block_kind(block) == command
        lifted = self._lift(block)

        if active:
            for item in lifted:
                if item.name in TEXTBLOCK_TAGS:
                    item.name = "p"
        elif command in HEADINGS:
            for item in lifted:
                if item.name in TEXTBLOCK_TAGS:
                    item.name = HEADINGS[command]
        elif command == "code_block":
            pre = self._soup.new_tag("pre")
            code = self._soup.new_tag("code")
            code.string = "\n".join(item.get_text() for item in lifted)
            pre.append(code)
            lifted[0].insert_before(pre)
            for item in lifted:
                item.decompose()
        else:
            self._wrap_blocks(command, lifted)

        self._reparse()
        blocks = self.blocks
        index = min(index, len(blocks) - 1)
        length = len(blocks[index].get_text())
        _, start, end = self.selection
        self.selection = (index, min(start, length), min(end, length))

    def _lift(self, block: Tag) -> List[Tag]:
        """
        Replaces a container block with the text blocks it holds and returns
        them. Text blocks come back unchanged; a code block becomes a paragraph.
        """
        kind = _block_kind(block)
        if kind == "code_block":
            paragraph = self._soup.new_tag("p")
            text = block.get_text()
            if text:
                paragraph.string = text
            block.replace_with(paragraph)
            return [paragraph]

        if kind == "blockquote":
            items = [child for child in block.contents if isinstance(child, Tag)]
            if not items:
                items = [self._wrap_inline(list(block.contents))]
        elif kind in ("bullet_list", "ordered_list", "task_list"):
            items = []
            for li in block.find_all("li", recursive=False):
                children = [child for child in li.contents if isinstance(child, Tag)]
                loose_text = any(
                    isinstance(child, NavigableString) and child.strip()
                    for child in li.contents
                )
                if children and not loose_text and all(c.name in BLOCK_TAGS for c in children):
                    items.extend(children)
                else:
                    items.append(self._wrap_inline(list(li.contents)))
        else:
            return [block]

        for item in items:
            block.insert_before(item.extract())
        block.decompose()
        return items

    def _wrap_inline(self, nodes: list) -> Tag:
        paragraph = self._soup.new_tag("p")
        for node in nodes:
            paragraph.append(node.extract())
        return paragraph

    def _wrap_blocks(self, command: str, items: List[Tag]) -> None:
        if command == "blockquote":
            container = self._soup.new_tag("blockquote")
        elif command == "ordered_list":
            container = self._soup.new_tag("ol")
        elif command == "task_list":
            container = self._soup.new_tag("ul", attrs={"data-type": "taskList"})
        else:
            container = self._soup.new_tag("ul")

        items[0].insert_before(container)
        for item in items:
            if command == "blockquote":
                container.append(item.extract())
                continue
            if command == "task_list":
                li = self._soup.new_tag(
                    "li", attrs={"data-type": "taskItem", "data-checked": "false"}
                )
            else:
                li = self._soup.new_tag("li")
            li.append(item.extract())
            container.append(li)

    # ── Internals ─────────────────────────────────────────────────────────

    def _accepts(self, mime_type: str) -> bool:
        if not (mime_type or "").startswith("image/"):
            return False
        if self.uploader is None:
            logger.warning("Image %s ignored: editor has no uploader", mime_type)
            return False
        return True

    def _replace(self, html: str, emit_update: bool, record: bool) -> None:
        before = self.get_html()
        self._soup = self._normalize(BeautifulSoup(html, "html.parser"))
        self._clamp_selection()
        if record and before != self.get_html():
            self._push_history(before)
        if emit_update:
            self._emit()

    def _restore(self, html: str) -> None:
        self._soup = self._normalize(BeautifulSoup(html, "html.parser"))
        self.selection = (0, 0, 0)
        self._emit()

    def _reparse(self) -> None:
        self._soup = self._normalize(BeautifulSoup(str(self._soup), "html.parser"))
        self._clamp_selection()

    def _clamp_selection(self) -> None:
        blocks = self.blocks
        if not blocks:
            self.selection = (0, 0, 0)
            return
        index, start, end = self.selection
        index = min(index, len(blocks) - 1)
        length = len(blocks[index].get_text())
        self.selection = (index, min(start, length), min(end, length))

    def _commit(self, before: str) -> bool:
        if self.get_html() == before:
            return False
        self._push_history(before)
        self._emit()
        return True

    def _push_history(self, html: str) -> None:
        self._undo.append(html)
        del self._undo[:-HISTORY_LIMIT]
        self._redo.clear()

    def _emit(self) -> None:
        if self.on_update is not None:
            self.on_update(self.get_html())

    @staticmethod
    def _normalize(soup: BeautifulSoup) -> BeautifulSoup:
        """
        Makes every top-level node a block: whitespace between blocks goes,
        loose inline runs are wrapped in a paragraph.
        """
        run: list = []

        def flush():
            if not run:
                return
            paragraph = soup.new_tag("p")
            run[0].insert_before(paragraph)
            for node in run:
                paragraph.append(node.extract())
            run.clear()

        for node in list(soup.contents):
            if isinstance(node, Tag) and node.name in BLOCK_TAGS:
                flush()
            elif type(node) is NavigableString:
                if node.strip() or run:
                    run.append(node)
                else:
                    node.extract()
            elif isinstance(node, Tag):
                run.append(node)
            else:
                # comments, doctypes, processing instructions
                node.extract()
        flush()

        # trailing whitespace inside the last wrapped run
        for node in list(soup.contents):
            if type(node) is NavigableString and not node.strip():
                node.extract()
        return soup


class StreamAccumulator:
    """
    Collects streamed markdown and re-renders the whole accumulated text into
    the editor on every chunk.
    """

    def __init__(self, editor: EditorSurface):
        self.editor = editor
        self.buffer = ""
        self.chunks = 0

    def feed(self, chunk: str) -> None:
        self.buffer += chunk
        # One undo step for the whole stream: only the first render records
        self.editor.replace_from_markdown(self.buffer, record=self.chunks == 0)
        self.chunks += 1
