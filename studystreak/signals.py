"""
Study-session mutation signals.

Publisher:
    session_changed.send(user_id, day=..., minutes=...)

Subscriber (receives only for one user):
    session_changed.connect(handler, sender=user_id)
"""
from blinker import Namespace

study_signals = Namespace()

# Fired after a study session is created or updated for a user.
# Sender is the user id; payload: day, minutes
session_changed = study_signals.signal("session_changed")

# Fired after a successful refresh that extends or keeps a positive streak.
# Sender is the user id; payload: current, previous, change ("increased" | "maintained")
streak_changed = study_signals.signal("streak_changed")
