from portfolio_api.utils.config.env import Settings, settings
