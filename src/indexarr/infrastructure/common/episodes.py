"""Season/episode extraction from release titles using guessit."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from guessit import guessit


@dataclass(frozen=True)
class EpisodeInfo:
    """What a release title says about the episodes it contains.

    ``seasons`` holds every season of a multi-season pack; ``episodes`` is
    empty for season packs.
    """

    seasons: tuple[int, ...] = ()
    episodes: tuple[int, ...] = ()
    is_complete_series: bool = False

    @property
    def is_season_pack(self) -> bool:
        return self.is_complete_series or (bool(self.seasons) and not self.episodes)

    def contains_season(self, season: int) -> bool:
        return self.is_complete_series or season in self.seasons


def _as_ints(value: Any) -> tuple[int, ...]:
    if value is None:
        return ()
    values = value if isinstance(value, list) else [value]
    return tuple(v for v in values if isinstance(v, int))


def _as_strs(value: Any) -> list[str]:
    if value is None:
        return []
    values = value if isinstance(value, list) else [value]
    return [str(v) for v in values]


def parse_episode_info(title: str) -> EpisodeInfo | None:
    """Parse *title*; ``None`` when it does not look like a TV release."""
    guess = guessit(title)
    seasons = _as_ints(guess.get("season"))
    episodes = _as_ints(guess.get("episode"))
    complete = "Complete" in _as_strs(guess.get("other")) and not episodes

    if not seasons and not complete:
        return None
    return EpisodeInfo(
        seasons=seasons,
        episodes=episodes if seasons else (),
        is_complete_series=complete and not seasons,
    )


def matches_season_episode(
    title: str, season: int | None, episode: int | None = None
) -> bool:
    """Does *title* cover the requested season (and episode)?

    Season searches keep season packs containing the season. Episode
    searches additionally keep the matching single episodes.
    """
    if season is None:
        return True
    info = parse_episode_info(title)
    if info is None:
        return False
    if info.is_season_pack:
        return info.contains_season(season)
    if episode is None:
        return False
    return season in info.seasons and episode in info.episodes
