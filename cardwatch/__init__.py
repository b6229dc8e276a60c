"""
Cardwatch

Keeps Trello cards up to the team's card standards.

- Validator: checks cards on webhook events, tracks violations, re-checks
  them periodically with escalating Slack warnings
- Common: configuration, schemas, Trello and Slack clients

Usage:
    from cardwatch.common import load_config, TrelloClient, SlackNotifier
    from cardwatch.validator import EventProcessor, SweepProcessor, ViolationTracker
"""

__version__ = "0.1.0"
