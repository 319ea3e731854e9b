"""
Exchange Connectors Package

This package contains one subpackage per exchange. Each exchange has:
- wire.py: Pydantic models of the frames the exchange sends
- normalizer.py: wire → canonical event mapping
- api_client.py: signed REST logic
- public_connector.py / private_connector.py: PublicExchangeConnector and
  PrivateExchangeConnector implementations

Adding an exchange never requires changes to the core package.
"""
