from portfolio_api.utils.base.enums import BaseEnum, UserRole, TokenPurpose
