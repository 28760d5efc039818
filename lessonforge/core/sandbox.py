"""Combination matching engine for the drag-and-drop sandbox"""

import enum
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from lessonforge.core.models import Combination, PuzzlePiece, SandboxDefinition, SandboxMode

logger = logging.getLogger(__name__)

NO_MATCH_HINT = "Hmm, these pieces don't combine. Try different ones!"
BREAKDOWN_HINT = "Breaking down into smaller parts!"


class SandboxPhase(str, enum.Enum):
    IDLE = "idle"
    FILLING = "filling"
    SUCCESS = "success"
    NO_MATCH = "no_match"
    COMPLETE = "complete"


def match_combination(placed: Sequence[PuzzlePiece], combinations: Sequence[Combination]) -> Optional[Combination]:
    """
    Rule whose piece ids equal the placed ids as a set of the same size,
    regardless of drop order. Supersets and subsets never match.
    """
    if len(placed) < 2:
        return None
    placed_ids = Counter(piece.id for piece in placed)
    for combination in combinations:
        if Counter(combination.pieces) == placed_ids:
            return combination
    return None


@dataclass
class SandboxOutcome:
    """Result of one sandbox action, surfaced to the learner"""

    matched: bool = False
    result: Optional[PuzzlePiece] = None
    message: str = ""


class SandboxSession:
    """
    Inventory / combine-zone state for one section's sandbox.

    Build mode: Idle -> Filling -> (match check) -> Success | NoMatch,
    terminal once every rule's result has been created at least once.
    Breakdown mode: each click on a piece in the inventory reveals the next
    decomposition level until the levels run out.
    """

    def __init__(self, definition: SandboxDefinition):
        self.definition = definition
        self.inventory: List[PuzzlePiece] = []
        self.combine_zone: List[PuzzlePiece] = []
        self.created: List[PuzzlePiece] = []
        self.ever_created: set = set()
        self.revealed_levels = 0
        self.phase = SandboxPhase.IDLE
        self.message = ""
        self.reset()

    @property
    def mode(self) -> SandboxMode:
        return self.definition.mode

    @property
    def is_complete(self) -> bool:
        return self.phase == SandboxPhase.COMPLETE

    def _known_pieces(self) -> Dict[str, PuzzlePiece]:
        pieces = {c.result.id: c.result for c in self.definition.combinations}
        pieces.update({p.id: p for p in self.definition.startingPieces})
        return pieces

    def reset(self) -> SandboxOutcome:
        if self.mode == SandboxMode.BUILD:
            self.inventory = list(self.definition.startingPieces)
        else:
            self.inventory = [self.definition.targetPiece]
        self.combine_zone = []
        self.created = []
        self.ever_created = set()
        self.revealed_levels = 0
        self.phase = SandboxPhase.IDLE
        self.message = ""
        return SandboxOutcome()

    def _zone_phase(self) -> SandboxPhase:
        if self.ever_created and self._all_rules_created():
            return SandboxPhase.COMPLETE
        if not self.combine_zone:
            return SandboxPhase.IDLE
        if len(self.combine_zone) == 1:
            return SandboxPhase.FILLING
        return SandboxPhase.NO_MATCH

    def _all_rules_created(self) -> bool:
        return all(c.result.id in self.ever_created for c in self.definition.combinations)

    def place(self, piece_id: str) -> SandboxOutcome:
        """Move a piece from the inventory into the combine zone and evaluate the zone."""
        if self.mode != SandboxMode.BUILD:
            return SandboxOutcome()
        piece = _take(self.inventory, piece_id)
        if piece is None:
            return SandboxOutcome()
        self.combine_zone.append(piece)
        return self.evaluate()

    def remove(self, piece_id: str) -> SandboxOutcome:
        """Move a piece from the combine zone back to the inventory."""
        piece = _take(self.combine_zone, piece_id)
        if piece is None:
            return SandboxOutcome()
        self.inventory.append(piece)
        if len(self.combine_zone) >= 2:
            return self.evaluate()
        self.phase = self._zone_phase()
        return SandboxOutcome()

    def evaluate(self) -> SandboxOutcome:
        if len(self.combine_zone) < 2:
            self.phase = self._zone_phase()
            return SandboxOutcome()

        combination = match_combination(self.combine_zone, self.definition.combinations)
        if combination is None:
            self.phase = SandboxPhase.NO_MATCH
            self.message = NO_MATCH_HINT
            return SandboxOutcome(message=NO_MATCH_HINT)

        result = combination.result
        self.combine_zone = []
        self.created.append(result)
        self.inventory.append(result)
        self.ever_created.add(result.id)
        self.message = combination.explanation
        self.phase = SandboxPhase.SUCCESS
        logger.info("Sandbox combination matched: %s -> %s", sorted(combination.pieces), result.id)

        if self._all_rules_created():
            self.phase = SandboxPhase.COMPLETE
            if self.definition.celebrationMessage:
                self.message = self.definition.celebrationMessage
        return SandboxOutcome(matched=True, result=result, message=combination.explanation)

    def deconstruct(self, piece_id: str) -> SandboxOutcome:
        """
        Break one copy of a created piece back into the pieces its rule
        requires. Only a piece still on the board (inventory or combine
        zone) can be broken; one already consumed by a larger combination
        cannot.
        """
        combination = next(
            (c for c in self.definition.combinations if c.result.id == piece_id), None
        )
        if combination is None:
            return SandboxOutcome()
        if _take(self.inventory, piece_id) is None and _take(self.combine_zone, piece_id) is None:
            return SandboxOutcome()
        _take(self.created, piece_id)

        known = self._known_pieces()
        parts = [known[pid] for pid in combination.pieces if pid in known]
        self.inventory.extend(parts)

        self.message = f"Deconstructed {combination.result.label} back into {len(parts)} pieces!"
        self.phase = self._zone_phase()
        return SandboxOutcome(message=self.message)

    def break_down(self, piece_id: str) -> SandboxOutcome:
        """Breakdown mode: replace a clicked piece with the next decomposition level."""
        if self.mode != SandboxMode.BREAKDOWN or self.is_complete:
            return SandboxOutcome()
        if _take(self.inventory, piece_id) is None:
            return SandboxOutcome()

        levels = self.definition.breakdownLevels
        self.inventory.extend(levels[self.revealed_levels])
        self.revealed_levels += 1

        if self.revealed_levels >= len(levels):
            self.phase = SandboxPhase.COMPLETE
            self.message = self.definition.celebrationMessage or BREAKDOWN_HINT
        else:
            self.phase = SandboxPhase.SUCCESS
            self.message = BREAKDOWN_HINT
        return SandboxOutcome(message=self.message)


def _take(pieces: List[PuzzlePiece], piece_id: str) -> Optional[PuzzlePiece]:
    for index, piece in enumerate(pieces):
        if piece.id == piece_id:
            return pieces.pop(index)
    return None
