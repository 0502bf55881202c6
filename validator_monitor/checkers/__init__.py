"""Checker actors, one task per enabled check per endpoint."""

from .base import Checker
from .is_syncing import IsSyncingChecker
from .messages import BlockMessage, Check, SlashesRange, Terminate
from .missed_block import MissedBlockChecker, MissedBlockWindow
from .new_proposal import NewProposalChecker, ProposalCorrelator
from .slashes import SlashesChecker
from .validator_status import ValidatorStatusChecker

__all__ = [
    "BlockMessage",
    "Check",
    "Checker",
    "IsSyncingChecker",
    "MissedBlockChecker",
    "MissedBlockWindow",
    "NewProposalChecker",
    "ProposalCorrelator",
    "SlashesChecker",
    "SlashesRange",
    "Terminate",
    "ValidatorStatusChecker",
]
