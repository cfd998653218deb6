import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            'CORS_ORIGINS',
            'http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000',
        ).split(',')
        if origin.strip()
    ]
    # One debate prompt per line; falls back to a built-in list when missing
    TOPICS_FILE = os.environ.get('TOPICS_FILE') or os.path.join(BASE_DIR, 'topics.txt')
    # Phase timers (seconds)
    VOTING_DURATION_SEC = int(os.environ.get('VOTING_DURATION_SEC', '20'))
    VOTE_RESULTS_DURATION_SEC = int(os.environ.get('VOTE_RESULTS_DURATION_SEC', '5'))
    SKIP_NOTICE_DELAY_SEC = int(os.environ.get('SKIP_NOTICE_DELAY_SEC', '3'))
    SKIP_HOLD_SEC = int(os.environ.get('SKIP_HOLD_SEC', '5'))
    SOLO_DURATION_SEC = int(os.environ.get('SOLO_DURATION_SEC', '60'))
    DISCUSSION_DURATION_SEC = int(os.environ.get('DISCUSSION_DURATION_SEC', '180'))
    REVOTING_DURATION_SEC = int(os.environ.get('REVOTING_DURATION_SEC', '20'))
    ROUND_RESULTS_DURATION_SEC = int(os.environ.get('ROUND_RESULTS_DURATION_SEC', '8'))
    SCOREBOARD_DURATION_SEC = int(os.environ.get('SCOREBOARD_DURATION_SEC', '5'))
    WAITING_DURATION_SEC = int(os.environ.get('WAITING_DURATION_SEC', '3'))
    VOTE_SETTLE_SEC = float(os.environ.get('VOTE_SETTLE_SEC', '1'))
    GAME_START_DELAY_SEC = int(os.environ.get('GAME_START_DELAY_SEC', '2'))
    MAX_ROUNDS = int(os.environ.get('MAX_ROUNDS', '5'))
    # Minimum players (including the host) before start-game is accepted
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    MIN_USERNAME_LENGTH = int(os.environ.get('MIN_USERNAME_LENGTH', '2'))
    LOBBY_CODE_LENGTH = int(os.environ.get('LOBBY_CODE_LENGTH', '6'))
    # Mid-game disconnects are evicted after the grace window
    DISCONNECT_GRACE_SEC = int(os.environ.get('DISCONNECT_GRACE_SEC', '300'))
    REAPER_INTERVAL_SEC = int(os.environ.get('REAPER_INTERVAL_SEC', '60'))
    REAPER_ENABLED = os.environ.get('REAPER_ENABLED', '1') not in ('0', 'false', 'False')
