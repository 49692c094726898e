import secrets
from typing import List, Optional

import questionary

from spotify_radar import Services
from spotify_radar.auth import extract_code_from_redirect_url, get_authorize_url
from spotify_radar.errors import ApiError, AuthError, SessionError
from spotify_radar.models import Album, Artist, Track
from utils.logger import log_error, log_info, log_success, log_warning


async def sign_in_flow(services: Services, config: dict) -> bool:
    """Walk the user through the browser authorization and sign in. Returns success."""
    redirect_uri = str(config.get("spotify_redirect_uri", "")).strip()
    state = secrets.token_urlsafe(16).rstrip("=")
    url = get_authorize_url(
        str(config.get("spotify_client_id", "")),
        redirect_uri,
        scopes=config.get("spotify_scopes", []),
        state=state,
        show_dialog=True,
        accounts_base_url=str(config.get("spotify_accounts_base_url") or "https://accounts.spotify.com"),
    )

    print("\nOpen this URL in your browser and approve access:\n")
    print(url)
    pasted = await questionary.text("Paste the full URL you were redirected to:").ask_async()
    if not pasted:
        log_warning("Sign in cancelled")
        return False

    parsed = extract_code_from_redirect_url(pasted)
    if parsed.get("error"):
        log_error(f"Authorization denied: {parsed['error']}")
        return False
    if parsed.get("state") != state:
        log_error("Redirect URL does not belong to this sign in attempt (state mismatch)")
        return False
    if not parsed.get("code"):
        log_error("No authorization code found in that URL")
        return False

    try:
        await services.session_manager.sign_in(parsed["code"], redirect_uri)
    except (AuthError, SessionError) as e:
        log_error(f"Sign in failed: {e}")
        return False

    log_success("Signed in")
    return True


def _print_artists(title: str, artists: List[Artist]) -> None:
    print(f"\n{title}")
    print("=" * 50)
    for i, artist in enumerate(artists, 1):
        print(f"{i:>2}. {artist.name}  ({artist.followers:,} followers)")


def _print_tracks(title: str, tracks: List[Track]) -> None:
    print(f"\n{title}")
    print("=" * 50)
    for i, track in enumerate(tracks, 1):
        when = f"  [{track.played_at}]" if track.played_at else ""
        print(f"{i:>2}. {track.name} - {track.artist_names} ({track.duration}){when}")


def _print_albums(title: str, albums: List[Album]) -> None:
    print(f"\n{title}")
    print("=" * 50)
    for i, album in enumerate(albums, 1):
        print(f"{i:>2}. {album.name} ({album.release_date}, {album.total_tracks} tracks)")


async def _pick_time_range(default: str) -> Optional[str]:
    return await questionary.select(
        "Time range:",
        choices=["short_term", "medium_term", "long_term"],
        default=default,
    ).ask_async()


async def _browse_artist(services: Services, config: dict) -> None:
    query = await questionary.text("Artist name:").ask_async()
    if not query:
        return

    limit = int(config.get("default_limit", 20))
    artists = await services.gateway.search_artists(query, limit=limit)
    if not artists:
        log_info(f"No artists found for '{query}'")
        return

    choice = await questionary.select(
        "Pick an artist:",
        choices=[questionary.Choice(a.name, value=a) for a in artists] + ["Back"],
    ).ask_async()
    if not isinstance(choice, Artist):
        return

    albums = await services.gateway.artist_albums(choice.id, limit=limit)
    _print_albums(f"💿 Albums by {choice.name}", albums)
    if not albums:
        return

    album = await questionary.select(
        "Show tracks for:",
        choices=[questionary.Choice(a.name, value=a) for a in albums] + ["Back"],
    ).ask_async()
    if isinstance(album, Album):
        _print_tracks(f"🎵 {album.name}", await services.gateway.album_tracks(album.id))


async def catalog_menu(services: Services, config: dict) -> None:
    """
    Main browsing loop. Returns when the user exits or the session ends.
    """
    gateway = services.gateway
    limit = int(config.get("default_limit", 20))
    time_range = str(config.get("default_time_range", "medium_term"))

    while services.session_manager.session is not None:
        choice = await questionary.select(
            "🎧 Spotify Radar - What would you like to see?",
            choices=[
                "My profile",
                "Top artists",
                "Top tracks",
                "Recently played",
                "Search artists",
                "Sign out",
                "Exit",
            ],
        ).ask_async()

        try:
            if choice == "My profile":
                profile = await services.session_manager.user_profile()
                print(f"\n👤 {profile.display_name} ({profile.id})")
                print(f"   Plan: {profile.product or 'unknown'}   Country: {profile.country or '-'}")
                print(f"   Followers: {profile.followers:,}")

            elif choice == "Top artists":
                time_range = await _pick_time_range(time_range) or time_range
                _print_artists("⭐ Top artists", await gateway.top_artists(time_range=time_range, limit=limit))

            elif choice == "Top tracks":
                time_range = await _pick_time_range(time_range) or time_range
                _print_tracks("⭐ Top tracks", await gateway.top_tracks(time_range=time_range, limit=limit))

            elif choice == "Recently played":
                _print_tracks("🕘 Recently played", await gateway.recently_played(limit=limit))

            elif choice == "Search artists":
                await _browse_artist(services, config)

            elif choice == "Sign out":
                services.session_manager.sign_out()
                log_success("Signed out")
                break

            else:
                break

        except (ApiError, SessionError) as e:
            log_error(str(e))
