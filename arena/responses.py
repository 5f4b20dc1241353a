from flask import jsonify

from core.errors import ErrorKind, TournamentError

STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NOT_ALLOWED: 403,
    ErrorKind.SCHEDULE_BUSY: 409,
    ErrorKind.PERSISTENCE_FAILURE: 503,
}


def error_response(error: TournamentError):
    return jsonify(error.to_dict()), STATUS_CODES.get(error.kind, 400)
