# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
Announcement API - lets the website post announcements through the bot.

    POST /api/announce
    {"title": "...", "message": "...", "color": "5865F2", "channelId": "...", "password": "..."}

Callers authenticate with a Supabase access token (Authorization: Bearer ...)
or, failing that, with the admin password in the body.
"""

import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional

import aiohttp
from aiohttp import web

from .config import ApiSettings, SupabaseSettings

logger = logging.getLogger(__name__)

CORS_METHODS = 'POST, OPTIONS'
CORS_HEADERS = 'Content-Type, Authorization'


class SupabaseAuthVerifier:
    """Resolves a Supabase bearer token to a user, or None."""

    def __init__(self, settings: SupabaseSettings, session: Optional[aiohttp.ClientSession] = None):
        self.settings = settings
        self.session = session

    async def __call__(self, auth_header: Optional[str]):
        if not auth_header or not auth_header.startswith('Bearer '):
            return None
        token = auth_header[len('Bearer '):].strip()
        if not token:
            return None
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()

        headers = {'Authorization': f"Bearer {token}", 'apikey': self.settings.anon_key}
        try:
            async with self.session.get(f"{self.settings.url}/auth/v1/user", headers=headers,
                                        timeout=aiohttp.ClientTimeout(total=10)) as resp:
                if resp.status != 200:
                    return None
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Supabase auth error: {e}")
            return None

        if not isinstance(data, dict):
            return None
        return data.get('user') or (data if data.get('id') else None)

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()


def error_response(message: str, status: int) -> web.Response:
    return web.json_response({'error': message}, status=status)


class AnnouncementApi:
    """aiohttp application wrapping an AnnouncementService."""

    def __init__(self, announcer, settings: ApiSettings,
                 verifier: Optional[Callable[[Optional[str]], Awaitable[object]]] = None):
        self.announcer = announcer
        self.settings = settings
        self.verifier = verifier
        self._runner: Optional[web.AppRunner] = None

    def origin_allowed(self, origin: Optional[str]) -> bool:
        # Requests without an Origin (curl, server-to-server) are always allowed
        if not origin:
            return True
        origins = self.settings.allowed_origins
        return '*' in origins or origin in origins

    @web.middleware
    async def cors_middleware(self, request: web.Request, handler):
        origin = request.headers.get('Origin')
        if not self.origin_allowed(origin):
            logger.warning(f"Rejected request from origin {origin}")
            return error_response('Not allowed by CORS', 403)

        if request.method == 'OPTIONS':
            response = web.Response(status=204)
            response.headers['Access-Control-Allow-Methods'] = CORS_METHODS
            response.headers['Access-Control-Allow-Headers'] = CORS_HEADERS
        else:
            try:
                response = await handler(request)
            except web.HTTPNotFound:
                response = error_response('Not found', 404)
            except web.HTTPMethodNotAllowed:
                response = error_response('Method not allowed', 405)

        if origin:
            response.headers['Access-Control-Allow-Origin'] = origin
            response.headers['Access-Control-Allow-Credentials'] = 'true'
            response.headers['Vary'] = 'Origin'
        return response

    async def announce(self, request: web.Request) -> web.Response:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return error_response('Invalid JSON body', 400)
        if not isinstance(body, dict):
            return error_response('Invalid JSON body', 400)

        user = None
        if self.verifier is not None:
            user = await self.verifier(request.headers.get('Authorization'))
        if not user and body.get('password') != self.settings.admin_password:
            return error_response('Invalid authentication', 401)

        title = body.get('title')
        message = body.get('message')
        if not title or not message:
            return error_response('Title and message are required', 400)

        channel_id = body.get('channelId') or self.settings.announcement_channel_id
        if not channel_id:
            return error_response(
                'Channel ID is required (either in request or ANNOUNCEMENT_CHANNEL_ID env var)', 400)

        try:
            await self.announcer.send_announcement(channel_id, title, message, body.get('color'))
        except Exception as e:
            logger.error(f"Error sending announcement: {e}")
            return error_response(f"Failed to send announcement: {e}", 500)

        auth_method = 'Supabase' if user else 'Password'
        logger.info(f"Announcement sent via API: \"{title}\" by {auth_method} auth")
        return web.json_response({'success': True, 'message': 'Announcement sent successfully'})

    def create_app(self) -> web.Application:
        app = web.Application(middlewares=[self.cors_middleware])
        app.router.add_post('/api/announce', self.announce)
        return app

    async def start(self):
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.settings.host, self.settings.port)
        await site.start()
        logger.info(f"API server running on http://{self.settings.host}:{self.settings.port}")

    async def stop(self):
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
