"""Language match scoring between the viewer and a candidate partner."""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Iterable

from taalmeet.domain.partners.models import Partner, PartnerLanguage

NEUTRAL_SCORE = 50


def _by_role(languages: Iterable[PartnerLanguage], role: str) -> set[str]:
	return {item.language.lower() for item in languages if item.role == role}


def language_match_score(
	viewer_languages: Iterable[PartnerLanguage],
	partner_languages: Iterable[PartnerLanguage],
) -> int:
	"""Score 0-100 for how well two language profiles complement each other.

	A partner teaching what the viewer learns is worth 2 points, a partner
	learning what the viewer teaches is worth 1; the sum is divided by the
	number of languages the viewer listed.
	"""
	viewer = list(viewer_languages)
	partner = list(partner_languages)
	if not partner:
		return 0
	if not viewer:
		return NEUTRAL_SCORE

	viewer_teaching = _by_role(viewer, "teaching")
	viewer_learning = _by_role(viewer, "learning")
	partner_teaching = _by_role(partner, "teaching")
	partner_learning = _by_role(partner, "learning")

	points = 2 * len(viewer_learning & partner_teaching) + len(viewer_teaching & partner_learning)
	possible = len(viewer_teaching) + len(viewer_learning)
	# Half-up rounding, so 12.5 scores 13.
	return min(100, int(math.floor(points / possible * 100 + 0.5)))


def with_match_scores(viewer_languages: Iterable[PartnerLanguage], partners: Iterable[Partner]) -> list[Partner]:
	"""Fill in scores for partners the backend sent without one."""
	viewer = list(viewer_languages)
	return [
		p if p.match_score else replace(p, match_score=language_match_score(viewer, p.languages))
		for p in partners
	]
