"""Relevance scoring of project files against a selection and task description."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Protocol, Sequence, Set, Tuple

from ..analyzers import FileLookup, resolve, scan
from ..config import ScoringConfig, ScoringWeights
from ..git.history import NullHistory, SourceHistory
from ..graph.project_graph import ProjectGraph
from ..logging import get_logger
from ..models import ContextResult, GraphSnapshot, ScoredFile
from .keywords import count_keyword_matches, extract_keywords
from .tokens import TiktokenCounter, TokenCounter, smart_preview

logger = get_logger("scoring")

USER_SEED_MODIFIER = 1.0


class ScorableFiles(FileLookup, Protocol):
    """File Store surface used while scoring."""

    def all_files(self) -> List[str]:
        ...

    def read(self, path: str) -> str:
        ...


@dataclass(frozen=True)
class SeedEvidence:
    """Per-seed facts gathered from disk and history for one request."""

    imports: FrozenSet[str] = frozenset()
    commit_touches: Mapping[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class RequestSignals:
    """Everything ``score`` needs beyond the snapshot, gathered up front."""

    keywords: Tuple[str, ...] = ()
    evidence: Mapping[str, SeedEvidence] = field(default_factory=dict)


_NO_EVIDENCE = SeedEvidence()


def score(
    seeds: Mapping[str, float],
    candidates: Iterable[str],
    snapshot: GraphSnapshot,
    signals: RequestSignals,
    *,
    weights: ScoringWeights,
    shared_commit_multi_threshold: float,
) -> Dict[str, float]:
    """Score every candidate against a seed basket of ``path -> modifier``.

    Keyword and hub bonuses do not depend on seeds. Every other signal is
    weighted by the modifier of the seed that produced it, and a seed never
    contributes to its own score.
    """
    hubs = set(snapshot.hubs)
    seed_dirs = {seed: _parent(seed) for seed in seeds}
    seed_mentions = {seed: set(snapshot.mentions.get(seed, ())) for seed in seeds}

    scores: Dict[str, float] = {}
    for candidate in candidates:
        total = 0.0

        matches = count_keyword_matches(candidate, list(signals.keywords))
        if matches >= 2:
            total += weights.keyword_multi
        elif matches == 1:
            total += weights.keyword_single

        if candidate in hubs:
            total += weights.hub

        candidate_dir = _parent(candidate)
        shared_commits = 0.0
        for seed, modifier in seeds.items():
            if seed == candidate:
                continue
            evidence = signals.evidence.get(seed, _NO_EVIDENCE)
            shared_commits += evidence.commit_touches.get(candidate, 0) * modifier
            if candidate in evidence.imports:
                total += weights.direct_dependency * modifier
            if candidate in seed_mentions[seed]:
                total += weights.mention * modifier
            if candidate_dir == seed_dirs[seed] and candidate_dir != ".":
                total += weights.same_folder * modifier
                if PurePosixPath(candidate).stem == PurePosixPath(seed).stem:
                    total += weights.sibling * modifier

        if shared_commits >= shared_commit_multi_threshold:
            total += weights.shared_commit_multi
        elif shared_commits > 0:
            total += weights.shared_commit_single

        scores[candidate] = total
    return scores


def rank(scores: Mapping[str, float], min_score: float) -> List[ScoredFile]:
    """Filter by ``min_score`` and order by score descending, then path."""
    kept = [ScoredFile(path, value) for path, value in scores.items() if value >= min_score]
    kept.sort(key=lambda item: (-item.score, item.path))
    return kept


class RelevanceScorer:
    """Ranks project files for a selection and fits them into a token budget."""

    def __init__(
        self,
        file_store: ScorableFiles,
        graph: ProjectGraph,
        history: SourceHistory | None = None,
        settings: ScoringConfig | None = None,
        token_counter: TokenCounter | None = None,
    ) -> None:
        self.file_store = file_store
        self.graph = graph
        self.history = history or NullHistory()
        self.settings = settings or ScoringConfig()
        self.token_counter = token_counter or TiktokenCounter()

    def calculate_context(
        self, selection: Sequence[str], task_text: Optional[str] = None
    ) -> ContextResult:
        snapshot = self.graph.snapshot
        user_selected = list(dict.fromkeys(selection))
        selected = set(user_selected)
        candidates = [path for path in self.file_store.all_files() if path not in selected]

        keywords = tuple(extract_keywords(task_text))
        history_available = self.history.is_available()
        evidence: Dict[str, SeedEvidence] = {}

        def signals_for(seeds: Iterable[str]) -> RequestSignals:
            for seed in seeds:
                if seed not in evidence:
                    evidence[seed] = self._gather_evidence(seed, history_available)
            return RequestSignals(keywords=keywords, evidence=evidence)

        seeds: Dict[str, float] = {path: USER_SEED_MODIFIER for path in user_selected}
        heuristic_seeds: List[str] = []
        if len(user_selected) <= self.settings.seed_expansion_threshold:
            expansion = self._score(seeds, candidates, snapshot, signals_for(seeds))
            for item in rank(expansion, self.settings.min_score):
                if len(heuristic_seeds) >= self.settings.seed_basket_size:
                    break
                heuristic_seeds.append(item.path)
            for path in heuristic_seeds:
                seeds[path] = self.settings.heuristic_seed_modifier
            if heuristic_seeds:
                logger.debug("Expanded seed basket with %s", ", ".join(heuristic_seeds))

        final_scores = self._score(seeds, candidates, snapshot, signals_for(seeds))
        all_neighbors = rank(final_scores, self.settings.min_score)
        prompt_neighbors = self._fit_budget(all_neighbors)

        logger.debug(
            "Context for %d selected files: %d neighbors, %d within budget",
            len(user_selected),
            len(all_neighbors),
            len(prompt_neighbors),
        )
        return ContextResult(
            user_selected=user_selected,
            heuristic_seed_files=heuristic_seeds,
            all_neighbors=all_neighbors,
            prompt_neighbors=prompt_neighbors,
        )

    # ------------------------------------------------------------------
    # Internals

    def _score(
        self,
        seeds: Mapping[str, float],
        candidates: Sequence[str],
        snapshot: GraphSnapshot,
        signals: RequestSignals,
    ) -> Dict[str, float]:
        return score(
            seeds,
            candidates,
            snapshot,
            signals,
            weights=self.settings.weights,
            shared_commit_multi_threshold=self.settings.shared_commit_multi_threshold,
        )

    def _gather_evidence(self, seed: str, history_available: bool) -> SeedEvidence:
        imports: Set[str] = set()
        try:
            content = self.file_store.read(seed)
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Skipping dependencies of unreadable seed %s: %s", seed, exc)
        else:
            for specifier in scan(seed, content):
                target = resolve(seed, specifier, self.file_store)
                if target is not None and target != seed:
                    imports.add(target)

        touches: Dict[str, int] = defaultdict(int)
        if history_available:
            commits = self.history.commits_for_file(
                seed, max_count=self.settings.shared_commit_depth
            )
            for commit in commits:
                for path in set(self.history.files_for_commit(commit.hash)):
                    if path != seed:
                        touches[path] += 1

        return SeedEvidence(imports=frozenset(imports), commit_touches=dict(touches))

    def _fit_budget(self, ranked: Sequence[ScoredFile]) -> List[str]:
        accepted: List[str] = []
        used = 0
        for item in ranked:
            try:
                content = self.file_store.read(item.path)
            except (OSError, UnicodeDecodeError):
                content = ""
            preview = smart_preview(
                content,
                min_lines=self.settings.preview_min_lines,
                max_lines=self.settings.preview_max_lines,
            )
            tokens = self.token_counter(preview)
            if used + tokens > self.settings.token_budget:
                break
            used += tokens
            accepted.append(item.path)
        return accepted


def _parent(path: str) -> str:
    parent = str(PurePosixPath(path).parent)
    return parent or "."


__all__ = [
    "RelevanceScorer",
    "RequestSignals",
    "ScorableFiles",
    "SeedEvidence",
    "USER_SEED_MODIFIER",
    "rank",
    "score",
]
