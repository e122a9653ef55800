"""Identity module (Google OAuth sign-in and local user profiles).

Services:
    - GoogleSSOService: Google OAuth 2.0 device authorization.
    - IdentityBinder: merge-upserts the signed-in principal as a User.
"""
