from portfolio_api.models.user import User, SecretToken
