"""
Core Package

Contains the exchange-agnostic layer of the connectors:
- Schemas: Pydantic models for canonical events and requests
- Connector interfaces: abstract contracts for public and private connectors
- Signing, reconnection policy and bounded event delivery shared by all connectors

A consuming trading engine only ever imports from this package and from the
connector package it instantiates.
"""
