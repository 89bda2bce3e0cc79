# Utils package initialization file
from utils.ledger import format_camly, format_earned_message, points_to_coin

__all__ = ['format_camly', 'format_earned_message', 'points_to_coin']
