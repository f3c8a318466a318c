"""
A WSGI application exposing storage listings, downloads and usage statistics,
implemented with Flask.

:py:func:`create_app` builds the application from a configuration mapping that
recognizes these parameters:

``name``
   (str) _optional_.  a name for the flask app.

``api_tokens``
   (dict) _required_.  maps each accepted bearer token to a dictionary with the
   caller's ``user`` name and an ``admin`` flag.  Only admin callers may request
   storage statistics.

Routes:

``GET /api/storage-stats/<storage_id>``
   returns ``{"stats": {...}}`` for the whole storage, or ``{"error": ...}`` with
   status 400 (invalid id), 401 (no credentials), 403 (not an admin), 404
   (unknown storage) or 500 (listing failure).

``GET /api/files/<storage_id>/?prefix=...&token=...``
   lists one directory level.

``GET /api/files/<storage_id>/<key>?action=download``
   streams an object body; this is the URL the preview UI loads files from.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional

from flask import Flask, Response, jsonify, request

from .controller import StorageController
from .errors import AuthorizationError, NotFoundError, StorageError
from .file_utils import get_code_language, get_file_type
from .models import ListingResult

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """The authenticated identity behind a request."""

    user: str
    is_admin: bool = False


class AuthHandler(ABC):
    """
    an abstract base class for request authentication
    """

    @abstractmethod
    def authenticate(self) -> Optional[Caller]:
        """
        return the caller behind the current request, or None if the request
        carries no valid credentials
        """
        raise NotImplementedError()


class BearerTokenAuthHandler(AuthHandler):
    """
    An AuthHandler that accepts ``Authorization: Bearer <token>`` headers for a
    fixed set of configured tokens.
    """

    def __init__(self, tokens: Mapping):
        self._tokens = {
            token: Caller(user=str(info.get("user", "")), is_admin=bool(info.get("admin", False)))
            for token, info in tokens.items()
        }

    def authenticate(self) -> Optional[Caller]:
        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return self._tokens.get(token.strip())


def make_error_response(message: str, status: int) -> Response:
    response = jsonify({"error": message})
    response.status_code = status
    return response


def parse_storage_id(value: str) -> Optional[int]:
    try:
        storage_id = int(value)
    except (TypeError, ValueError):
        return None
    return storage_id if storage_id > 0 else None


def _code_language(entry) -> Optional[str]:
    if entry.is_directory or get_file_type(entry.name) != "code":
        return None
    return get_code_language(entry.name)


def serialize_listing(listing: ListingResult) -> dict[str, object]:
    return {
        "entries": [
            {
                "key": entry.key,
                "name": entry.name,
                "size": entry.size,
                "lastModified": entry.last_modified,
                "isDirectory": entry.is_directory,
                "etag": entry.etag,
                "previewType": None if entry.is_directory else get_file_type(entry.name),
                "codeLanguage": _code_language(entry),
            }
            for entry in listing.entries
        ],
        "directories": list(listing.directory_names),
        "isTruncated": listing.is_truncated,
        "continuationToken": listing.continuation_token,
    }


def create_app(
    config: Mapping,
    controller: StorageController | None = None,
    auth: AuthHandler | None = None,
) -> Flask:
    """
    create the Flask application

    :param dict config:  the configuration data for the app
    :param StorageController controller:  the controller resolving storage ids;
             if not provided, one using the default profile store is created
    :param AuthHandler auth:  the authentication handler; if not provided, a
             :py:class:`BearerTokenAuthHandler` built from ``api_tokens`` is used
    """
    if auth is None:
        tokens = config.get("api_tokens")
        if not isinstance(tokens, Mapping):
            raise ValueError("Missing required config parameter: api_tokens")
        auth = BearerTokenAuthHandler(tokens)
    controller = controller or StorageController()

    app = Flask(config.get("name", __name__))

    @app.route("/api/storage-stats/<storage_id>", methods=["GET"])
    def storage_stats(storage_id: str):
        caller = auth.authenticate()
        if caller is None:
            return make_error_response("Not authenticated", 401)
        if not caller.is_admin:
            return make_error_response("Unauthorized", 403)
        parsed_id = parse_storage_id(storage_id)
        if parsed_id is None:
            return make_error_response("Invalid storage ID", 400)

        try:
            stats = controller.collect_statistics(parsed_id, is_admin=caller.is_admin)
        except NotFoundError:
            return make_error_response("Storage not found", 404)
        except AuthorizationError:
            return make_error_response("Unauthorized", 403)
        except (StorageError, ValueError) as exc:
            LOGGER.exception("Error collecting storage stats for storage %d", parsed_id)
            return make_error_response(str(exc) or "Failed to collect storage statistics", 500)
        except Exception:
            LOGGER.exception("Unexpected error collecting storage stats for storage %d", parsed_id)
            return make_error_response("Failed to collect storage statistics", 500)
        return jsonify({"stats": stats.to_dict()})

    @app.route("/api/files/<storage_id>/", methods=["GET"])
    def list_files(storage_id: str):
        if auth.authenticate() is None:
            return make_error_response("Not authenticated", 401)
        parsed_id = parse_storage_id(storage_id)
        if parsed_id is None:
            return make_error_response("Invalid storage ID", 400)

        try:
            listing = controller.list_objects(
                parsed_id,
                prefix=request.args.get("prefix", ""),
                continuation_token=request.args.get("token") or None,
            )
        except NotFoundError:
            return make_error_response("Storage not found", 404)
        except (StorageError, ValueError) as exc:
            LOGGER.exception("Error listing storage %d", parsed_id)
            return make_error_response(str(exc), 500)
        except Exception:
            LOGGER.exception("Unexpected error listing storage %d", parsed_id)
            return make_error_response("Failed to list storage", 500)
        return jsonify(serialize_listing(listing))

    @app.route("/api/files/<storage_id>/<path:key>", methods=["GET"])
    def file_content(storage_id: str, key: str):
        if auth.authenticate() is None:
            return make_error_response("Not authenticated", 401)
        parsed_id = parse_storage_id(storage_id)
        if parsed_id is None:
            return make_error_response("Invalid storage ID", 400)
        if request.args.get("action") != "download":
            return make_error_response("Unsupported action", 400)

        try:
            body = controller.get_object(parsed_id, key)
        except NotFoundError:
            return make_error_response("Storage not found", 404)
        except StorageError as exc:
            status = getattr(exc, "status_code", None)
            if status == 404:
                return make_error_response("File not found", 404)
            LOGGER.exception("Error downloading from storage %d", parsed_id)
            return make_error_response(str(exc), 500)
        except Exception:
            LOGGER.exception("Unexpected error downloading from storage %d", parsed_id)
            return make_error_response("Failed to download file", 500)

        response = Response(body.stream, content_type=body.content_type)
        if body.content_length is not None:
            response.headers["Content-Length"] = str(body.content_length)
        return response

    return app
