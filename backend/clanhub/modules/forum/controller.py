"""
Forum Controller - list / create / detail view state.

Holds everything the forum screen shows and the handlers the screen
calls. Every remote call is caught here: on failure a notification is
pushed and the state stays as it was before the call.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from clanhub.core.database import utcnow
from clanhub.modules.forum.categories import CategoryDirectory
from clanhub.modules.forum.comment_tree import find_comment, iter_comments, replace_comment
from clanhub.modules.forum.comments import load_comment_tree
from clanhub.modules.forum.deep_link import DeepLinkResolver
from clanhub.modules.forum.errors import ForumStoreError, VoteFailedError
from clanhub.modules.forum.pagination import (
    PAGE_SIZE,
    PaginationCoordinator,
    PostFilters,
    clamp_page,
)
from clanhub.modules.forum.ports import (
    CapabilityProvider,
    IdentityProvider,
    LoggingNotifier,
    NavigationState,
    Notifier,
    StaticSession,
)
from clanhub.modules.forum.readiness import probe_readiness
from clanhub.modules.forum.store import ForumStore
from clanhub.modules.forum.types import (
    CommentView,
    MessageKey,
    PostView,
    SortMode,
    StoreReadiness,
    ViewMode,
    VoteTarget,
)
from clanhub.modules.forum.votes import VoteOutcome, VoteReconciler


# ==================== Form state ====================


@dataclass(frozen=True)
class PostForm:
    """Create/edit post form; `editing_post_id` is set when editing."""

    title: str = ""
    content: str = ""
    category_id: str = ""
    pinned: bool = False
    editing_post_id: str = ""


class PostDraft(BaseModel):
    """Validated post form submission."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    content: str | None = None
    category_id: str | None = None

    @field_validator("content", "category_id")
    @classmethod
    def empty_to_none(cls, v: str | None) -> str | None:
        return v or None


class InlineMode(str, Enum):
    """What the inline comment form is doing."""

    REPLY = "reply"
    EDIT = "edit"


@dataclass(frozen=True)
class InlineCommentForm:
    """The single open inline reply or comment-edit form."""

    mode: InlineMode
    comment_id: str


# ==================== Controller ====================


class ForumController:
    """
    Stateful forum engine for one clan and one user session.

    Usage:
        forum = ForumController(store, clan_id, identity=session, capabilities=session)
        await forum.start()
        await forum.handle_vote_post(forum.posts[0].id, 1)
    """

    def __init__(
        self,
        store: ForumStore,
        clan_id: str,
        identity: IdentityProvider,
        capabilities: CapabilityProvider | None = None,
        notifier: Notifier | None = None,
        navigation: NavigationState | None = None,
        page_size: int = PAGE_SIZE,
        on_scroll_top: Callable[[], None] | None = None,
    ) -> None:
        """
        Initialize controller.

        Args:
            store: Forum data access
            clan_id: Clan whose forum is shown
            identity: Provides the current user id
            capabilities: Provides the moderation flag (default: none)
            notifier: Sink for failure message keys (default: log only)
            navigation: Category slug and post id from the query string
            page_size: Posts per page
            on_scroll_top: Called when a post is opened
        """
        self.store = store
        self.clan_id = clan_id
        self.identity = identity
        self.capabilities = capabilities or StaticSession()
        self.notifier = notifier or LoggingNotifier()
        self.navigation = navigation or NavigationState()
        self.on_scroll_top = on_scroll_top

        self.paginator = PaginationCoordinator(store, page_size=page_size)
        self.votes = VoteReconciler(store)
        self.deep_links = DeepLinkResolver(store)

        self.readiness: StoreReadiness | None = None
        self.categories = CategoryDirectory()
        self.filters = PostFilters()
        self.posts: tuple[PostView, ...] = ()
        self.comments: tuple[CommentView, ...] = ()
        self.view_mode = ViewMode.LIST
        self.selected_post: PostView | None = None
        self.is_loading = True

        self.form = PostForm()
        self.comment_text = ""
        self.inline_form: InlineCommentForm | None = None
        self.deleting_post_id = ""

    # ==================== Derived state ====================

    @property
    def current_user_id(self) -> str:
        return self.identity.current_user_id or ""

    @property
    def can_manage(self) -> bool:
        return bool(self.capabilities.can_moderate)

    @property
    def tables_ready(self) -> bool:
        return self.readiness is not StoreReadiness.NOT_PROVISIONED

    @property
    def selected_category(self) -> str:
        return self.filters.category_id

    @property
    def sort_mode(self) -> SortMode:
        return self.filters.sort

    @property
    def search_term(self) -> str:
        return self.filters.search

    @property
    def total_count(self) -> int:
        return self.paginator.total_count

    @property
    def editing_post_id(self) -> str:
        return self.form.editing_post_id

    @property
    def replying_to(self) -> str:
        if self.inline_form and self.inline_form.mode is InlineMode.REPLY:
            return self.inline_form.comment_id
        return ""

    @property
    def editing_comment_id(self) -> str:
        if self.inline_form and self.inline_form.mode is InlineMode.EDIT:
            return self.inline_form.comment_id
        return ""

    def _notify(self, key: MessageKey) -> None:
        self.notifier.push(key.value)

    def _set_view(self, mode: ViewMode) -> None:
        if mode is not self.view_mode:
            logger.debug(f"Forum view {self.view_mode.value} -> {mode.value}")
        self.view_mode = mode

    def _find_post(self, post_id: str) -> PostView | None:
        for post in self.posts:
            if post.id == post_id:
                return post
        if self.selected_post and self.selected_post.id == post_id:
            return self.selected_post
        return None

    def _open_post_id(self) -> str:
        return self.selected_post.id if self.selected_post else ""

    def _may_change(self, author_id: str) -> bool:
        """Authors may change their own content; moderators anything."""
        if not self.current_user_id:
            return False
        return self.can_manage or author_id == self.current_user_id

    # ==================== Loading ====================

    async def start(self) -> None:
        """
        Probe the schema, load categories and the first page, then open
        the deep-linked post if navigation names one.
        """
        if self.readiness in (None, StoreReadiness.UNAVAILABLE):
            self.readiness = await probe_readiness(self.store)

        if self.readiness is StoreReadiness.UNAVAILABLE:
            self._notify(MessageKey.LOAD_FAILED)
            self.is_loading = False
            return
        if not self.tables_ready:
            self.posts = ()
            self.is_loading = False
            return

        await self.load_categories()
        self.sync_category_from_slug(self.navigation.category_slug)
        await self.load_posts()

        page = clamp_page(self.navigation.page, self.paginator.page_count)
        if page and page != self.paginator.page:
            await self.go_to_page(page)

        if self.navigation.post_id:
            await self.handle_deep_link(self.navigation.post_id)

    async def load_categories(self) -> None:
        """Reload the clan's category directory."""
        if not self.tables_ready:
            return
        try:
            self.categories = await CategoryDirectory.load(self.store, self.clan_id)
        except ForumStoreError:
            self._notify(MessageKey.LOAD_FAILED)

    def sync_category_from_slug(self, slug: str) -> None:
        """Select the category named by a URL slug; unknown slugs select all."""
        match = self.categories.find_by_slug(slug)
        self.filters = replace(self.filters, category_id=match.id if match else "")

    async def load_posts(self) -> None:
        """Fetch the current page with the current filters."""
        await self._load_posts(self.categories)

    async def _load_posts(self, categories: CategoryDirectory) -> None:
        if not self.tables_ready:
            self.posts = ()
            self.is_loading = False
            return

        self.is_loading = True
        try:
            page = await self.paginator.fetch(
                self.clan_id,
                self.filters,
                categories,
                self.current_user_id,
            )
        except ForumStoreError:
            self._notify(MessageKey.LOAD_FAILED)
        else:
            self.posts = page.posts
        finally:
            self.is_loading = False

    async def load_comments(self, post_id: str) -> None:
        """Load the comment tree of the open post."""
        if not self.tables_ready:
            self.comments = ()
            return
        try:
            tree = await load_comment_tree(self.store, post_id, self.current_user_id)
        except ForumStoreError:
            self._notify(MessageKey.LOAD_FAILED)
            return

        # The user may have opened another post meanwhile
        if self.selected_post is None or self.selected_post.id != post_id:
            logger.debug(f"Discarding comments of {post_id}: no longer open")
            return
        self.comments = tree

    # ==================== List filters ====================

    async def select_category(self, category_id: str) -> None:
        self.filters = replace(self.filters, category_id=category_id)
        self.paginator.set_page(1)
        await self.load_posts()

    async def set_sort_mode(self, mode: SortMode) -> None:
        self.filters = replace(self.filters, sort=SortMode(mode))
        self.paginator.set_page(1)
        await self.load_posts()

    async def set_search_term(self, term: str) -> None:
        self.filters = replace(self.filters, search=term)
        self.paginator.set_page(1)
        await self.load_posts()

    async def go_to_page(self, page: int) -> None:
        self.paginator.set_page(page)
        await self.load_posts()

    # ==================== Detail ====================

    async def handle_open_post(self, post: PostView) -> None:
        """list -> detail: show a post and load its comments."""
        self.selected_post = post
        self.comments = ()
        self._set_view(ViewMode.DETAIL)
        self.comment_text = ""
        self.inline_form = None
        if self.on_scroll_top:
            self.on_scroll_top()
        await self.load_comments(post.id)

    async def handle_deep_link(self, post_id: str) -> None:
        """
        Open a post by id without going through the list.

        Does nothing if that post is already open in the detail view.
        """
        if not post_id or not self.tables_ready:
            return
        if (
            self.view_mode is ViewMode.DETAIL
            and self.selected_post is not None
            and self.selected_post.id == post_id
        ):
            return

        view_before = (self.view_mode, self._open_post_id())
        try:
            linked = await self.deep_links.resolve(post_id, self.categories, self.current_user_id)
        except ForumStoreError:
            self._notify(MessageKey.LOAD_FAILED)
            return
        if linked is None:
            return

        # The user may have navigated meanwhile
        if (self.view_mode, self._open_post_id()) != view_before:
            logger.debug(f"Discarding deep link to {post_id}: view changed while loading")
            return

        self.selected_post = linked.post
        self.comments = linked.comments
        self._set_view(ViewMode.DETAIL)
        self.comment_text = ""
        self.inline_form = None

    async def handle_back_to_list(self) -> None:
        """detail -> list."""
        self._set_view(ViewMode.LIST)
        self.selected_post = None
        self.comments = ()
        self.inline_form = None
        await self.load_posts()

    # ==================== Voting ====================

    async def handle_vote_post(self, post_id: str, direction: int) -> None:
        """Toggle the current user's vote on a loaded post."""
        try:
            outcome = await self.votes.vote(
                VoteTarget.POST, self._find_post(post_id), self.current_user_id, direction
            )
        except VoteFailedError:
            self._notify(MessageKey.VOTE_FAILED)
            return
        if outcome is not None:
            self._apply_post_vote(outcome)

    async def handle_vote_comment(self, comment_id: str, direction: int) -> None:
        """Toggle the current user's vote on a comment of the open post."""
        try:
            outcome = await self.votes.vote(
                VoteTarget.COMMENT,
                find_comment(self.comments, comment_id),
                self.current_user_id,
                direction,
            )
        except VoteFailedError:
            self._notify(MessageKey.VOTE_FAILED)
            return
        if outcome is not None:
            self.comments = replace_comment(
                self.comments,
                outcome.entity_id,
                score=outcome.score,
                user_vote=outcome.user_vote,
            )

    def _apply_post_vote(self, outcome: VoteOutcome) -> None:
        changes = {"score": outcome.score, "user_vote": outcome.user_vote}
        self.posts = tuple(
            replace(post, **changes) if post.id == outcome.entity_id else post
            for post in self.posts
        )
        if self.selected_post and self.selected_post.id == outcome.entity_id:
            self.selected_post = replace(self.selected_post, **changes)

    # ==================== Create / Edit post ====================

    def reset_form(self) -> None:
        self.form = PostForm()

    def update_form(self, **changes: object) -> None:
        """Change form fields (title, content, category_id, pinned)."""
        changes.pop("editing_post_id", None)
        self.form = replace(self.form, **changes)

    def handle_open_create(self) -> None:
        """-> create with a blank form."""
        self.reset_form()
        self._set_view(ViewMode.CREATE)

    def handle_edit_post(self, post: PostView) -> None:
        """detail -> create with the form filled from `post`."""
        self.form = PostForm(
            title=post.title,
            content=post.content or "",
            category_id=post.category_id or "",
            pinned=post.is_pinned,
            editing_post_id=post.id,
        )
        self._set_view(ViewMode.CREATE)

    def reset_form_and_set_list(self) -> None:
        """create -> list (cancel)."""
        self.reset_form()
        self._set_view(ViewMode.LIST)

    async def handle_submit_post(self) -> None:
        """Save the form as a new post or as an edit of `editing_post_id`."""
        if not self.current_user_id:
            return
        try:
            draft = PostDraft(
                title=self.form.title,
                content=self.form.content,
                category_id=self.form.category_id,
            )
        except ValidationError as e:
            logger.debug(f"Rejected post form: {e.error_count()} invalid field(s)")
            self._notify(MessageKey.SAVE_FAILED)
            return

        if self.form.editing_post_id:
            await self._save_edit(draft)
        else:
            await self._save_new(draft)

    async def _save_new(self, draft: PostDraft) -> None:
        values = {
            "clan_id": self.clan_id,
            "author_id": self.current_user_id,
            **draft.model_dump(),
        }
        if self.can_manage and self.form.pinned:
            values["is_pinned"] = True

        try:
            post = await self.store.insert_post(values)
        except ForumStoreError:
            self._notify(MessageKey.SAVE_FAILED)
            return

        logger.info(f"Forum post {post.id} created by {self.current_user_id}")
        self.reset_form()
        self._set_view(ViewMode.LIST)
        self.paginator.set_page(1)
        await self.load_posts()

    async def _save_edit(self, draft: PostDraft) -> None:
        post_id = self.form.editing_post_id
        values = {**draft.model_dump(), "updated_at": utcnow()}
        if self.can_manage:
            values["is_pinned"] = self.form.pinned

        try:
            current = await self.store.get_post(post_id)
            if current is None or not self._may_change(current.author_id):
                logger.warning(f"User {self.current_user_id!r} may not edit post {post_id}")
                self._notify(MessageKey.SAVE_FAILED)
                return
            row = await self.store.update_post(post_id, values)
        except ForumStoreError:
            self._notify(MessageKey.SAVE_FAILED)
            return
        if row is None:
            self._notify(MessageKey.SAVE_FAILED)
            return

        self.reset_form()
        if self.selected_post is not None and self.selected_post.id == post_id:
            self.selected_post = replace(
                self.selected_post,
                title=row.title,
                content=row.content,
                category_id=row.category_id,
                category_name=self.categories.name_of(row.category_id),
                category_slug=self.categories.slug_of(row.category_id),
                is_pinned=bool(row.is_pinned),
                updated_at=row.updated_at,
            )
            self._set_view(ViewMode.DETAIL)
            await self.load_comments(post_id)
        else:
            self._set_view(ViewMode.LIST)
        await self.load_posts()

    # ==================== Delete post ====================

    def request_delete(self, post_id: str) -> None:
        """Ask for confirmation before deleting a loaded post (author or moderator)."""
        post = self._find_post(post_id)
        if post is None or not self._may_change(post.author_id):
            return
        self.deleting_post_id = post_id

    def cancel_delete(self) -> None:
        self.deleting_post_id = ""

    async def handle_confirm_delete(self) -> None:
        """Delete the post awaiting confirmation."""
        if not self.deleting_post_id:
            return
        post_id = self.deleting_post_id

        try:
            row = await self.store.get_post(post_id)
            if row is None or not self._may_change(row.author_id):
                logger.warning(f"User {self.current_user_id!r} may not delete post {post_id}")
                self.deleting_post_id = ""
                return
            await self.store.delete_post(post_id)
        except ForumStoreError:
            self._notify(MessageKey.DELETE_FAILED)
            self.deleting_post_id = ""
            return

        logger.info(f"Forum post {post_id} deleted by {self.current_user_id}")
        self.deleting_post_id = ""
        if self.view_mode is ViewMode.DETAIL:
            self._set_view(ViewMode.LIST)
            self.selected_post = None
            self.comments = ()
            self.inline_form = None
        await self.load_posts()

    # ==================== Moderation ====================

    async def handle_toggle_pin(self, post: PostView) -> None:
        await self._toggle_flag(post, "is_pinned")

    async def handle_toggle_lock(self, post: PostView) -> None:
        await self._toggle_flag(post, "is_locked")

    async def _toggle_flag(self, post: PostView, flag: str) -> None:
        if not self.can_manage:
            return
        try:
            row = await self.store.update_post(post.id, {flag: not getattr(post, flag)})
        except ForumStoreError:
            self._notify(MessageKey.SAVE_FAILED)
            return
        if row is None:
            self._notify(MessageKey.SAVE_FAILED)
            return

        await self.load_posts()
        if self.selected_post and self.selected_post.id == post.id:
            self.selected_post = replace(self.selected_post, **{flag: bool(getattr(row, flag))})

    # ==================== Comments ====================

    def start_reply(self, comment_id: str) -> None:
        """Open the inline reply form, closing any other inline form."""
        self.inline_form = InlineCommentForm(InlineMode.REPLY, comment_id)

    def start_comment_edit(self, comment_id: str) -> None:
        """Open the inline edit form, closing any other inline form."""
        self.inline_form = InlineCommentForm(InlineMode.EDIT, comment_id)

    def close_inline_form(self) -> None:
        self.inline_form = None


    async def handle_submit_comment(self) -> None:
        """Add a top-level comment to the open post."""
        await self._submit_comment(parent_comment_id=None)

    async def handle_submit_reply(self) -> None:
        """Reply to the comment in the inline reply slot."""
        if not self.replying_to:
            return
        await self._submit_comment(parent_comment_id=self.replying_to)

    async def _submit_comment(self, parent_comment_id: str | None) -> None:
        post = self.selected_post
        content = self.comment_text.strip()
        if not self.current_user_id or post is None or not content:
            return
        if post.is_locked and not self.can_manage:
            return

        try:
            await self.store.insert_comment(
                post_id=post.id,
                author_id=self.current_user_id,
                content=content,
                parent_comment_id=parent_comment_id,
            )
        except ForumStoreError:
            self._notify(MessageKey.SAVE_FAILED)
            return

        self.comment_text = ""
        self.inline_form = None
        await self.refresh_comment_count()
        await self.load_comments(post.id)

    async def handle_edit_comment(self, comment_id: str, new_content: str) -> None:
        """Replace a comment's text (author or moderator)."""
        if self.selected_post is None:
            return
        comment = find_comment(self.comments, comment_id)
        content = new_content.strip()
        if comment is None or not content or not self._may_change(comment.author_id):
            return

        try:
            await self.store.update_comment(comment_id, content)
        except ForumStoreError:
            self._notify(MessageKey.SAVE_FAILED)
            return

        if self.editing_comment_id == comment_id:
            self.inline_form = None
        await self.load_comments(self.selected_post.id)

    async def handle_delete_comment(self, comment_id: str) -> None:
        """Delete a comment and all replies beneath it (author or moderator)."""
        if self.selected_post is None:
            return
        comment = find_comment(self.comments, comment_id)
        if comment is None or not self._may_change(comment.author_id):
            return

        try:
            removed = await self.store.delete_comment_tree(comment_id)
        except ForumStoreError:
            self._notify(MessageKey.DELETE_COMMENT_FAILED)
            return

        logger.info(f"Deleted comment {comment_id} ({removed} comments removed)")
        subtree = {node.id for node in iter_comments([comment])}
        if self.inline_form and self.inline_form.comment_id in subtree:
            self.inline_form = None
        await self.refresh_comment_count()
        await self.load_comments(self.selected_post.id)

    async def refresh_comment_count(self) -> None:
        """Re-read the open post's comment count."""
        if self.selected_post is None:
            return
        post_id = self.selected_post.id
        try:
            count = await self.store.get_comment_count(post_id)
        except ForumStoreError as e:
            logger.warning(f"Could not refresh comment count of {post_id}: {e}")
            return

        if self.selected_post and self.selected_post.id == post_id:
            self.selected_post = replace(self.selected_post, comment_count=count)
        self.posts = tuple(
            replace(post, comment_count=count) if post.id == post_id else post
            for post in self.posts
        )

    # ==================== Session ====================

    async def handle_identity_changed(self) -> None:
        """Re-derive every `user_vote` after the signed-in user changed."""
        self.inline_form = None
        self.deleting_post_id = ""
        await self.load_posts()

        if self.selected_post is None:
            return
        post_id = self.selected_post.id
        votes: dict[str, int] = {}
        if self.current_user_id:
            try:
                votes = await self.store.get_user_votes(
                    VoteTarget.POST, self.current_user_id, [post_id]
                )
            except ForumStoreError:
                self._notify(MessageKey.LOAD_FAILED)
                return
        self.selected_post = replace(self.selected_post, user_vote=votes.get(post_id, 0))
        await self.load_comments(post_id)
