"""Infrastructure Layer: adapters behind the domain interfaces.

Provider SDK clients, the rich console UI, configuration loading, logging
setup and the resilience layer that every remote call goes through.
"""
