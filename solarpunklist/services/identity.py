"""Community identity: slugs, name normalisation and duplicate detection."""

import re
import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass, field

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")
_WHITESPACE = re.compile(r"\s+")


def slugify(name: str) -> str:
    """Derive the URL slug for a community name.

    ASCII-folds accented characters, lowercases, collapses every run of
    characters outside ``[a-z0-9]`` into one hyphen and trims hyphens from
    both ends. ``slugify(slugify(x)) == slugify(x)``.
    """
    folded = unicodedata.normalize("NFKD", name or "").encode("ascii", "ignore").decode("ascii")
    return _NON_SLUG_CHARS.sub("-", folded.lower()).strip("-")


def normalize_name(name: str) -> str:
    return _WHITESPACE.sub(" ", (name or "").casefold()).strip()


def is_duplicate(
    candidate_name: str,
    candidate_slug: str,
    known_slugs: Iterable[str],
    known_names: Iterable[str],
    seen_in_batch: Iterable[str] = (),
) -> bool:
    """True if the candidate collides on slug or on normalised name."""
    if candidate_slug in set(known_slugs) or candidate_slug in set(seen_in_batch):
        return True
    normalized = normalize_name(candidate_name)
    return any(normalize_name(n) == normalized for n in known_names)


@dataclass
class DedupIndex:
    """Snapshot of known identities, owned by a single pipeline run.

    Built from the record store at run start and extended as the run persists
    new communities, so two candidates in one run can never share a slug.
    """

    slugs: set[str] = field(default_factory=set)
    names: set[str] = field(default_factory=set)
    batch_slugs: set[str] = field(default_factory=set)

    @classmethod
    def from_known(cls, slugs: Iterable[str], names: Iterable[str]) -> "DedupIndex":
        return cls(
            slugs=set(slugs),
            names={normalize_name(n) for n in names},
        )

    def is_duplicate(self, name: str, slug: str | None = None) -> bool:
        slug = slug if slug is not None else slugify(name)
        if not slug:
            return True
        return (
            slug in self.slugs
            or slug in self.batch_slugs
            or normalize_name(name) in self.names
        )

    def add(self, name: str, slug: str | None = None) -> None:
        self.batch_slugs.add(slug if slug is not None else slugify(name))
        self.names.add(normalize_name(name))
