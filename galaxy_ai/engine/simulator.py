"""
Hypothetical-state simulator.

The simulator produces detached copies of a game state for lookahead and
resolves the rest of a turn on them by driving the rules engine. Every
decision that arises while a copy is resolved is answered by the decision
engine itself, so no copy ever waits on a human or leaks into the real game.
"""
import logging
from typing import Any, Dict, List

from galaxy_ai.core.constants import (
    GAME_END_PRESTIGE, Action, Completion, Where,
)
from galaxy_ai.core.game import GameState
from galaxy_ai.core.rules import RulesEngine
from galaxy_ai.errors import SimulationError

logger = logging.getLogger(__name__)

# Seed used by every hypothetical copy, so lookahead never sees the real stream
SIMULATION_SEED = 1


class Simulator:
    """
    Copies states for lookahead and finishes turns on them.

    Attributes:
        rules: Rules engine used to resolve phases
        controller: Decision controller installed for every seat of a copy
        discard_order: Per-player hand cards ordered from most to least
            discardable, used when a copy's hand outgrows the real hand
    """

    def __init__(self, rules: RulesEngine, controller: Any):
        self.rules = rules
        self.controller = controller
        self.discard_order: Dict[int, List[int]] = {}

    def simulate(self, state: GameState, who: int) -> GameState:
        """
        Copy a state for lookahead from a player's viewpoint.

        The first copy of a real state is marked hypothetical, loses the real
        random seed, remembers the searching player and hands every seat to
        the decision engine. Copies of copies keep that context.

        Args:
            state: State to copy
            who: Searching player

        Returns:
            Hypothetical copy
        """
        sim = state.clone()
        if not sim.simulation:
            sim.simulation = True
            sim.random_seed = SIMULATION_SEED
            sim.sim_who = who
            for player in sim.players:
                player.control = self.controller
        return sim

    def complete_turn(self, state: GameState, partial: Completion) -> None:
        """
        Resolve the remainder of the current round on a hypothetical state.

        With ``Completion.CHECK`` only the current phase is finished; with
        ``Completion.DEVSET`` phases up to and including settle are played;
        with ``Completion.ROUND`` the full round is played, including the
        discard phase, and the next round's prestige bonuses are awarded.

        Args:
            state: Hypothetical state to advance
            partial: How much of the round to resolve

        Raises:
            SimulationError: If the state is a real game
        """
        if not state.simulation:
            raise SimulationError(
                "Cannot complete a turn on a real game",
                context={"round": state.round, "action": state.cur_action}
            )

        if state.game_over:
            return

        rules = self.rules

        # Finish the current phase for players who have not acted yet
        if state.cur_action in (Action.CONSUME_TRADE, Action.PRODUCE):
            rules.finish_phase(state)
        if state.cur_action in (Action.SETTLE, Action.SETTLE2):
            rules.resolve_takeovers(state)
        if state.cur_action == Action.PRODUCE:
            rules.produce_end(state)

        rules.clear_temp(state)
        rules.check_goals(state)
        rules.check_prestige(state)

        for action in range(state.cur_action + 1, Action.PRODUCE + 1):
            if partial == Completion.DEVSET and action >= Action.CONSUME_TRADE:
                break
            if partial == Completion.CHECK:
                break

            state.cur_action = action
            if not state.action_selected[action]:
                continue
            rules.run_phase(state, action)

        state.cur_action = Action.ROUND_END

        if partial == Completion.ROUND:
            rules.discard_phase(state)
            rules.check_goals(state)

        if self.is_game_over(state):
            logger.debug(f"Hypothetical game ends in round {state.round}")
            state.game_over = True

        if not state.game_over and partial == Completion.ROUND:
            rules.start_prestige(state)

            sim_who = state.sim_who
            held = state.count_area(sim_who, Where.HAND)
            low_hand = state.players[sim_who].low_hand
            if low_hand < held:
                self.quick_discard(state, sim_who, held - low_hand)

    def play_round(self, state: GameState) -> None:
        """Reveal the chosen actions on a hypothetical state and play the whole round."""
        self.rules.note_actions(state)
        state.cur_action = Action.ROUND_START
        self.complete_turn(state, Completion.ROUND)

    def is_game_over(self, state: GameState) -> bool:
        """Check the end-of-round game end conditions."""
        if state.vp_pool <= 0:
            return True
        target = self.rules.game_end_target(state)
        for who, player in enumerate(state.players):
            if state.count_area(who, Where.ACTIVE) >= target:
                return True
            if state.uses_prestige and player.prestige >= GAME_END_PRESTIGE:
                return True
        return False

    def quick_discard(self, state: GameState, who: int, amount: int) -> int:
        """
        Discard a player's most discardable cards still in hand.

        Each discard cancels one anonymous discard already counted.

        Returns:
            Number of cards discarded
        """
        discarded = 0
        for index in self.discard_order.get(who, []):
            if discarded >= amount:
                break
            card = state.cards[index]
            if card.owner != who or card.where != Where.HAND:
                continue
            state.move_card(index, -1, Where.DISCARD)
            state.players[who].fake_discards -= 1
            discarded += 1
        return discarded
