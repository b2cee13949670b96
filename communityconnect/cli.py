"""Command-line interface for Community Connect.

This module provides a Typer-based CLI over the feed, composer, help
request and profile services.

Commands:
- feed: Show active posts, blood requests first
- post: Create a post (optionally with a photo or video)
- help: Offer to help on someone else's post
- profile: Show your profile, badges and posts
- whoami: Verify sign-in
- categories: List categories per post type

Example:
    $ communityconnect feed
    $ communityconnect post --title "Need O- urgently" --category blood
    $ communityconnect help 3f2a...
    $ communityconnect profile
"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from communityconnect.api import AsyncBackendClient, AuthRequiredError
from communityconnect.composer import PostComposer, categories_for
from communityconnect.config import settings
from communityconnect.context import AppContext
from communityconnect.feed import POST_WITH_AUTHOR, FeedLoader
from communityconnect.help_requests import RequestDispatcher, action_label
from communityconnect.logging import setup_logging
from communityconnect.models import (
    Category,
    MediaUpload,
    Post,
    PostDraft,
    PostType,
)
from communityconnect.notices import NoticeBoard, NoticeLevel
from communityconnect.profile import ProfileService
from communityconnect.repository import Repository
from communityconnect.telemetry import shutdown_telemetry
from communityconnect.utils import format_iso

# Initialize CLI app
app = typer.Typer(
    name="communityconnect",
    help="Community mutual-aid board: browse needs, post requests, offer help",
    add_completion=False,
)
console = Console()

NOTICE_STYLES = {
    NoticeLevel.INFO: "yellow",
    NoticeLevel.SUCCESS: "bold green",
    NoticeLevel.ERROR: "bold red",
}


# =============================================================================
# Helper Functions
# =============================================================================


def configure_logging(verbose: bool = False) -> None:
    """Switch to DEBUG logging when ``--verbose`` is given."""
    if verbose:
        setup_logging(
            level="DEBUG",
            json_logs=settings.log_json,
            log_file=settings.log_file,
            colorize=not settings.log_json,
        )


def run_async(coro):
    """Run async coroutine in event loop.

    Args:
        coro: Coroutine to run

    Returns:
        Result of coroutine execution
    """
    try:
        return asyncio.run(coro)
    finally:
        shutdown_telemetry()


def print_notices(notices: NoticeBoard) -> None:
    for notice in notices.drain():
        style = NOTICE_STYLES[notice.level]
        console.print(f"[{style}]{notice.message}[/{style}]")


@asynccontextmanager
async def connect(
    email: Optional[str],
    password: Optional[str],
    require_auth: bool = True,
):
    """Open a backend client, sign in, and yield an ``AppContext``.

    Raises:
        AuthRequiredError: When ``require_auth`` and no credentials are available
    """
    email = email or settings.community_email
    password = password or settings.community_password

    async with AsyncBackendClient() as backend:
        if email and password:
            await backend.sign_in_with_password(email, password)
        elif require_auth:
            raise AuthRequiredError(
                "Credentials required: pass --email/--password or set "
                "COMMUNITY_EMAIL and COMMUNITY_PASSWORD"
            )
        yield AppContext.from_backend(backend)


def posts_table(posts: list[Post], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Category", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Author", style="magenta")
    table.add_column("Status")
    table.add_column("Posted", style="dim")
    table.add_column("Expires", style="red")
    table.add_column("ID", style="dim")

    for post in posts:
        category = post.category.label.upper()
        if post.is_blood:
            category = f"🩸 {category}"
        table.add_row(
            category,
            post.title,
            post.author_name,
            post.status.value,
            format_iso(post.created_at),
            format_iso(post.expires_at) or "",
            post.id,
        )
    return table


# Options shared by commands that talk to the backend
EmailOption = typer.Option(
    None,
    "--email",
    "-e",
    help="Sign-in email (defaults to COMMUNITY_EMAIL)",
)
PasswordOption = typer.Option(
    None,
    "--password",
    "-p",
    help="Sign-in password (defaults to COMMUNITY_PASSWORD)",
)
VerboseOption = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Enable verbose logging",
)


# =============================================================================
# CLI Commands
# =============================================================================


@app.command()
def feed(
    email: Optional[str] = EmailOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Show the activity feed: active posts, newest first, blood requests on top.

    Examples:
        $ communityconnect feed
        $ communityconnect feed --email me@example.org --password secret
    """
    configure_logging(verbose)

    async def _feed() -> bool:
        async with connect(email, password, require_auth=False) as ctx:
            posts = await FeedLoader(ctx).load()
            failed = bool(ctx.notices.errors)
            print_notices(ctx.notices)
            if failed:
                return False
            if not posts:
                console.print("📭 No active posts")
                return True
            console.print(posts_table(posts, f"Activity Feed ({len(posts)} posts)"))
            return True

    try:
        ok = run_async(_feed())
    except Exception as e:
        console.print(f"\n❌ [bold red]Feed failed: {e}[/bold red]")
        raise typer.Exit(code=1)

    if not ok:
        raise typer.Exit(code=1)


@app.command()
def post(
    title: str = typer.Option(..., "--title", "-t", help="Post headline"),
    category: Category = typer.Option(..., "--category", "-c", help="Post category"),
    description: str = typer.Option("", "--description", "-d", help="Details"),
    post_type: PostType = typer.Option(
        PostType.NEEDY,
        "--type",
        help="needy, or organization (organizations only)",
    ),
    media: Optional[Path] = typer.Option(
        None,
        "--media",
        "-m",
        exists=True,
        dir_okay=False,
        readable=True,
        help="Photo or video to attach",
    ),
    email: Optional[str] = EmailOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Create a post. Blood posts expire after a few hours.

    Examples:
        $ communityconnect post --title "Need O- urgently" --category blood
        $ communityconnect post -t "Winter coats" -c clothes --media coats.jpg
    """
    configure_logging(verbose)

    async def _post() -> bool:
        async with connect(email, password) as ctx:
            composer = PostComposer(ctx)
            if not await composer.open():
                print_notices(ctx.notices)
                return False

            draft = PostDraft(
                title=title,
                description=description,
                category=category,
                post_type=post_type,
                media=MediaUpload.from_path(media) if media else None,
            )
            result = await composer.submit(draft)
            print_notices(ctx.notices)

            if result.ok:
                console.print(f"🆔 Post ID: [yellow]{result.post.id}[/yellow]")
                if result.post.expires_at:
                    console.print(
                        f"⏳ Expires at: [yellow]{format_iso(result.post.expires_at)}[/yellow]"
                    )
            return result.ok

    try:
        ok = run_async(_post())
    except Exception as e:
        console.print(f"\n❌ [bold red]Post failed: {e}[/bold red]")
        raise typer.Exit(code=1)

    if not ok:
        raise typer.Exit(code=1)


@app.command("help")
def help_(
    post_id: str = typer.Argument(..., help="ID of the post to help with"),
    email: Optional[str] = EmailOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Offer to help on someone else's post. The owner is notified.

    Examples:
        $ communityconnect help 3f2a9c1e-...
    """
    configure_logging(verbose)

    async def _help() -> bool:
        async with connect(email, password) as ctx:
            posts = Repository[Post](ctx.backend, "posts", Post)
            target = await posts.get(post_id, columns=POST_WITH_AUTHOR)
            if target is None:
                console.print(f"❌ [bold red]Post not found: {post_id}[/bold red]")
                return False

            console.print(f"🤝 {action_label(target)}: [bold]{target.title}[/bold]")
            result = await RequestDispatcher(ctx).request_help(target)
            had_notices = len(ctx.notices) > 0
            print_notices(ctx.notices)
            if not result.ok and not had_notices:
                console.print(f"[bold red]{result.message}[/bold red]")
            return result.ok

    try:
        ok = run_async(_help())
    except Exception as e:
        console.print(f"\n❌ [bold red]Request failed: {e}[/bold red]")
        raise typer.Exit(code=1)

    if not ok:
        raise typer.Exit(code=1)


@app.command()
def profile(
    email: Optional[str] = EmailOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Show your profile, earned badges and your posts.

    Examples:
        $ communityconnect profile
    """
    configure_logging(verbose)

    async def _profile() -> bool:
        async with connect(email, password) as ctx:
            page = await ProfileService(ctx).load_page()
            print_notices(ctx.notices)

            if page.profile is None:
                console.print("❌ [bold red]Profile not found[/bold red]")
                return False

            profile_table = Table(title="Profile", show_header=False)
            profile_table.add_column("Field", style="cyan")
            profile_table.add_column("Value", style="green")
            profile_table.add_row("Name", page.profile.display_name)
            profile_table.add_row("Role", page.profile.role.value)
            profile_table.add_row("Verified", "✅" if page.profile.verified else "❌")
            console.print(profile_table)

            if page.badges:
                console.print(
                    "🏅 Badges: " + ", ".join(f"{b.icon} {b.name}" for b in page.badges)
                )
            else:
                console.print("🏅 No badges yet")

            if page.posts:
                console.print(posts_table(page.posts, f"My Posts ({len(page.posts)})"))
            else:
                console.print("📭 No posts yet")
            return True

    try:
        ok = run_async(_profile())
    except Exception as e:
        console.print(f"\n❌ [bold red]Profile failed: {e}[/bold red]")
        raise typer.Exit(code=1)

    if not ok:
        raise typer.Exit(code=1)


@app.command()
def whoami(
    email: Optional[str] = EmailOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Verify sign-in and show the signed-in account.

    Examples:
        $ communityconnect whoami
    """
    configure_logging(verbose)

    console.print(f"🌐 Backend: [yellow]{settings.supabase_url}[/yellow]")
    console.print(f"🔑 Anon key: [yellow]{settings.redact_key()}[/yellow]\n")

    async def _whoami() -> None:
        async with connect(email, password) as ctx:
            account = await ProfileService(ctx).get_profile(ctx.require_user())

            table = Table(title="Signed-in User", show_header=False)
            table.add_column("Field", style="cyan")
            table.add_column("Value", style="green")
            table.add_row("User ID", ctx.session.user_id)
            table.add_row("Email", ctx.session.email or "N/A")
            table.add_row("Name", account.display_name if account else "N/A")
            table.add_row(
                "Verified",
                "✅" if account and account.verified else "❌",
            )
            console.print(table)

    try:
        run_async(_whoami())
    except Exception as e:
        console.print(f"\n❌ [bold red]Sign-in failed: {e}[/bold red]")
        raise typer.Exit(code=1)

    console.print("\n✅ [bold green]Signed in![/bold green]")


@app.command()
def categories() -> None:
    """List the categories available for each post type.

    Examples:
        $ communityconnect categories
    """
    table = Table(title="Categories")
    table.add_column("Post Type", style="cyan")
    table.add_column("Categories", style="green")

    for post_type in PostType:
        table.add_row(
            post_type.value,
            ", ".join(c.label for c in categories_for(post_type)),
        )
    console.print(table)


def main() -> None:
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
