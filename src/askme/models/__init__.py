from .request import FinalResponse, ModelInfo, Request, Token

__all__ = ['Request', 'Token', 'FinalResponse', 'ModelInfo']
