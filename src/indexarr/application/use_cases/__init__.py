from .release_merge import ReleaseMerger, merge_releases, normalize_title
from .search_orchestrator import SearchOrchestrator

__all__ = ["ReleaseMerger", "SearchOrchestrator", "merge_releases", "normalize_title"]
