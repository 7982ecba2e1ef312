from rest_framework_simplejwt.authentication import JWTAuthentication


class HeaderOrQueryJWTAuthentication(JWTAuthentication):
    """
    Accept the access token from the Authorization header or, failing that,
    from a ``?token=`` query parameter (for inline previews and downloads
    opened directly by the browser).
    """

    def authenticate(self, request):
        result = super().authenticate(request)
        if result is not None:
            return result

        raw_token = request.query_params.get('token')
        if not raw_token:
            return None

        validated_token = self.get_validated_token(raw_token)
        return self.get_user(validated_token), validated_token
