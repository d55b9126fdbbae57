# Local server for the relay.
# Run with: uvicorn walkwithme_relay.fast_api_server:app --reload --port 8787
import base64
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import Response

from walkwithme_relay.relay_handler import lambda_handler


def _lambda_to_fastapi_response(lambda_resp: dict[str, Any]) -> Response:
    """
    Convert an AWS Lambda-style proxy response into a FastAPI Response.

    All headers are carried over; the CORS headers matter to browsers even on errors.
    """
    status_code = lambda_resp.get("statusCode", 200)
    headers = dict(lambda_resp.get("headers", {}))
    body = lambda_resp.get("body", "")

    if lambda_resp.get("isBase64Encoded", False):
        body = base64.b64decode(body)

    # Responses without a body must not carry a Content-Type
    if status_code == 204 or not body:
        headers.pop("Content-Type", None)
        return Response(content=b"", status_code=status_code, headers=headers)

    return Response(content=body, status_code=status_code, headers=headers)


def _process_request(body: bytes, request: Request) -> Response:
    """Convert a FastAPI request to a Lambda-style event."""
    method = request.method
    path = request.url.path
    route_key = f"{method} {path}"

    event = {
        "routeKey": route_key,
        "rawPath": path,
        "body": body,
        "isBase64Encoded": False,
        "headers": dict(request.headers),
        "queryStringParameters": dict(request.query_params),
        "requestContext": {"routeKey": route_key, "http": {"method": method, "path": path}},
    }
    # Response is a Lambda-style response. Set a direct HTTP response in FastAPI
    lambda_response = lambda_handler(event, None)
    return _lambda_to_fastapi_response(lambda_response)


app: FastAPI = FastAPI(title="walkwithme chat relay")


# Every method reaches the handler so rejections carry the same CORS headers
@app.api_route("/", methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"])
async def relay(request: Request) -> Response:
    body = await request.body()
    return _process_request(body, request)


@app.get("/healthz")
def healthz() -> dict[str, bool]:
    return {"ok": True}
