"""
CLI utility to generate sample token issuance events for the extension service.

In production the identity provider builds these events itself, right before
it issues an access token. For local testing, this script plays the identity
provider: it prints a callback body with a configurable client, partner
header and existing scopes, plus a curl command that POSTs it.

Usage examples:

    # Event for partner ACME
    python -m scripts.generate_event --partner ACME

    # Event without the partner header (expect SUCCESS with no operations)
    python -m scripts.generate_event

    # Custom client and already granted scopes
    python -m scripts.generate_event --partner P1 --client-id billing-app --scope openid internal:read

    # Only the JSON body, e.g. for piping into curl -d @-
    python -m scripts.generate_event --partner ACME --body-only
"""

import argparse
import json

from src.engine import PARTNER_HEADER

ACTION_TYPE = "PRE_ISSUE_ACCESS_TOKEN"


def build_event(
    client_id: str,
    partner: str | None = None,
    scopes: list[str] | None = None,
    grant_type: str = "client_credentials",
) -> dict:
    """
    Build a callback body in the shape the identity provider sends.

    Args:
        client_id: OAuth client the token is issued to
        partner: Value for the partner header (None omits the header)
        scopes: Scopes already on the access token
        grant_type: Grant type of the original token request

    Returns:
        The request body as a JSON-serializable dict
    """
    headers = []
    if partner is not None:
        headers.append({"name": PARTNER_HEADER, "value": [partner]})

    return {
        "actionType": ACTION_TYPE,
        "event": {
            "request": {
                "clientId": client_id,
                "grantType": grant_type,
                "additionalHeaders": headers,
            },
            "accessToken": {
                "scopes": scopes or [],
                "claims": [
                    {"name": "aud", "value": [client_id]},
                    {"name": "client_id", "value": client_id},
                ],
            },
        },
        "allowedOperations": [
            {"op": "add", "paths": ["/accessToken/scopes/", "/accessToken/claims/"]},
        ],
    }


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Generate sample token issuance events for the extension service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Partner event:
    %(prog)s --partner ACME

  No partner header:
    %(prog)s

  Body only:
    %(prog)s --partner ACME --body-only
        """,
    )

    parser.add_argument(
        "--partner",
        default=None,
        help=f"Value of the {PARTNER_HEADER} header (omitted when not given)",
    )
    parser.add_argument(
        "--client-id",
        default="sample-client",
        help="OAuth client id of the token request (default: sample-client)",
    )
    parser.add_argument(
        "--grant-type",
        default="client_credentials",
        help="Grant type of the token request (default: client_credentials)",
    )
    parser.add_argument(
        "--scope",
        nargs="+",
        default=[],
        help="Space-separated list of scopes already on the token",
    )
    parser.add_argument(
        "--url",
        default="http://localhost:8090/token-validation",
        help="Callback URL used in the printed curl command",
    )
    parser.add_argument(
        "--body-only",
        action="store_true",
        help="Print only the JSON body",
    )

    args = parser.parse_args()

    event = build_event(
        client_id=args.client_id,
        partner=args.partner,
        scopes=args.scope,
        grant_type=args.grant_type,
    )
    body = json.dumps(event, indent=2)

    if args.body_only:
        print(body)
        return

    print(f"Client:     {args.client_id}")
    print(f"Partner:    {args.partner if args.partner is not None else '(no header)'}")
    print(f"Scopes:     {args.scope}")
    print()
    print(body)

    print()
    print("Usage with curl:")
    print(f"  curl -X POST {args.url} \\")
    print('    -H "Content-Type: application/json" \\')
    print(f"    -d '{json.dumps(event)}'")


if __name__ == "__main__":
    main()
