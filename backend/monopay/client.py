"""HTTP client for the MonoPay API.

The bearer token lives in an explicit ``SessionStore`` handed to the
client rather than in ambient global state, so a browser bridge, a CLI
or a test can each supply their own storage.
"""
import time
from typing import Callable, Iterator, Optional, Protocol

import requests

WAITING_POLL_SEC = 3
IN_PROGRESS_POLL_SEC = 5


class SessionStore(Protocol):
    def get(self) -> Optional[dict]: ...

    def set(self, session: dict) -> None: ...

    def clear(self) -> None: ...


class MemorySessionStore:
    def __init__(self):
        self._session = None

    def get(self):
        return self._session

    def set(self, session):
        self._session = dict(session)

    def clear(self):
        self._session = None


class ApiError(Exception):
    def __init__(self, status: int, code: Optional[str], message: str, payload: Optional[dict] = None):
        super().__init__(message)
        self.status = status
        self.code = code
        self.message = message
        self.payload = payload or {}


def poll_interval(game: Optional[dict]) -> Optional[int]:
    """Seconds to wait before refetching, or None once polling should stop."""
    if not game:
        return None
    # The server publishes its cadence; fall back to the defaults without it
    if 'poll_interval' in game:
        return game['poll_interval']
    status = game.get('status')
    if status == 'waiting':
        return WAITING_POLL_SEC
    if status == 'in_progress':
        return IN_PROGRESS_POLL_SEC
    return None


class MonoPayClient:
    def __init__(self, base_url: str, store: Optional[SessionStore] = None, http=None, timeout: float = 10.0):
        self.base_url = base_url.rstrip('/')
        self.store = store if store is not None else MemorySessionStore()
        self.http = http if http is not None else requests.Session()
        self.timeout = timeout

    # -- plumbing --

    def _request(self, method: str, path: str, json=None, params=None) -> dict:
        headers = {}
        session = self.store.get()
        if session and session.get('token'):
            headers['Authorization'] = f"Bearer {session['token']}"
        resp = self.http.request(
            method, f'{self.base_url}{path}',
            json=json, params=params, headers=headers, timeout=self.timeout,
        )
        try:
            payload = resp.json()
        except ValueError:
            payload = {}
        if resp.status_code >= 400:
            if resp.status_code == 401 and payload.get('code') in ('TOKEN_EXPIRED', 'TOKEN_INVALID'):
                self.store.clear()
            raise ApiError(resp.status_code, payload.get('code'), payload.get('error') or resp.reason, payload)
        return payload

    def _remember(self, payload: dict) -> dict:
        self.store.set({'token': payload['token'], 'user': payload.get('user')})
        return payload

    @property
    def user(self) -> Optional[dict]:
        session = self.store.get()
        return session.get('user') if session else None

    # -- accounts --

    def signup(self, username: str, password: str) -> dict:
        return self._request('POST', '/api/auth/signup', json={'username': username, 'password': password})

    def signin(self, username: str, password: str) -> dict:
        return self._remember(self._request(
            'POST', '/api/auth/signin', json={'username': username, 'password': password},
        ))

    def signin_with_google(self, google_id: str, email: str, name=None, picture=None) -> dict:
        return self._remember(self._request('POST', '/api/auth/oauth/google', json={
            'google_id': google_id, 'email': email, 'name': name, 'picture': picture,
        }))

    def signout(self) -> None:
        self.store.clear()

    def me(self) -> dict:
        return self._request('GET', '/api/auth/me')['user']

    # -- games --

    def create_game(self, name: str, max_players=None, starting_balance=None, go_salary=None, settings=None) -> dict:
        body = {'name': name}
        for key, value in (('max_players', max_players), ('starting_balance', starting_balance),
                           ('go_salary', go_salary), ('settings', settings)):
            if value is not None:
                body[key] = value
        return self._request('POST', '/api/games/create', json=body)['game']

    def join_game(self, code: str) -> dict:
        return self._request('POST', '/api/games/join', json={'code': code})['game']

    def leave_game(self, game_id: int) -> dict:
        return self._request('POST', '/api/games/leave', json={'game_id': game_id})

    def get_game(self, code: str) -> dict:
        return self._request('GET', f'/api/games/{code}')['game']

    def active_game(self) -> Optional[dict]:
        return self._request('GET', '/api/games/my/active')['game']

    def toggle_ready(self, game_id: int) -> list:
        return self._request('POST', '/api/games/ready', json={'game_id': game_id})['players']

    def start_game(self, game_id: int) -> dict:
        return self._request('POST', '/api/games/start', json={'game_id': game_id})['game']

    def transfer(self, game_id: int, amount: int, category: str, to_player_id=None, description=None) -> dict:
        return self._request('POST', '/api/games/transfer', json={
            'game_id': game_id,
            'amount': amount,
            'category': category,
            'to_player_id': to_player_id,
            'description': description,
        })

    def end_game(self, game_id: int) -> dict:
        return self._request('POST', '/api/games/end', json={'game_id': game_id})['game']

    def watch_game(self, code: str, sleep: Callable[[float], None] = time.sleep,
                   max_polls: Optional[int] = None) -> Iterator[dict]:
        """Yield the game each poll until it leaves waiting/in_progress."""
        polls = 0
        while True:
            game = self.get_game(code)
            polls += 1
            yield game
            interval = poll_interval(game)
            if interval is None or (max_polls is not None and polls >= max_polls):
                return
            sleep(interval)
