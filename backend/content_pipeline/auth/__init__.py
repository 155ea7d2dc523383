from content_pipeline.auth.token import CurrentUser, TokenPayload, get_current_user, verify_token

__all__ = ["CurrentUser", "TokenPayload", "get_current_user", "verify_token"]
