from .process_record import ProcessRecord
from .reward_issuance import RewardIssuance

__all__ = [
    "ProcessRecord",
    "RewardIssuance",
]
