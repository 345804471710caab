"""Session authentication: cookie sessions holding the signed-in user id."""
