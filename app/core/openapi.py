"""
OpenAPI schema customizations for drf-spectacular.

Tag naming follows the pattern: [App Name] - [Group Name]
Examples:
- Auth - Profile (profile retrieve/update)
- Bookings - Actions (lifecycle transitions)
- Payments - Disputes (dispute list and resolution)
"""

# Natural language summaries for simplejwt endpoints
# Maps operation_id to (summary, description)
TOKEN_SUMMARIES = {
    "auth_token_create": (
        "Obtain tokens",
        "Authenticate with email and password to receive a JWT access/refresh pair.",
    ),
    "auth_token_refresh_create": (
        "Refresh access token",
        "Get a new access token using a valid refresh token.",
    ),
}

TAG_DESCRIPTIONS = [
    {
        "name": "Auth",
        "description": "JWT token issue and refresh.",
    },
    {
        "name": "Auth - Profile",
        "description": "Account type and country. The country picks the payment provider.",
    },
    {
        "name": "Auth - Verification",
        "description": "Identity verification for business accounts. Unverified businesses cannot be booked.",
    },
    {
        "name": "Bookings - Services",
        "description": "Service catalog. Providers list offerings; customers book them.",
    },
    {
        "name": "Bookings",
        "description": "Bookings where the caller is the customer or the provider.",
    },
    {
        "name": "Bookings - Actions",
        "description": (
            "Lifecycle transitions. Each one moves the booking and its escrow "
            "payment together and returns both."
        ),
    },
    {
        "name": "Payments",
        "description": "Hosted checkout for a booking's pending escrow payment.",
    },
    {
        "name": "Payments - Disputes",
        "description": "Disputed deliveries and their resolution by staff.",
    },
    {
        "name": "Notifications",
        "description": "Inbox of booking and payment notifications.",
    },
]


def group_auth_endpoints(result, generator, request, public):
    """
    Postprocessing hook to group API endpoints by function.

    Token endpoints get natural language summaries and the "Auth" tag.
    Everything else sets tags= in @extend_schema; this hook only adds
    the tag descriptions.
    """
    paths = result.get("paths", {})

    for path, methods in paths.items():
        for method, operation in methods.items():
            if not isinstance(operation, dict):
                continue

            operation_id = operation.get("operationId", "")

            if operation_id in TOKEN_SUMMARIES:
                summary, description = TOKEN_SUMMARIES[operation_id]
                operation["summary"] = summary
                operation["description"] = description
                operation["tags"] = ["Auth"]

    result["tags"] = TAG_DESCRIPTIONS
    return result
