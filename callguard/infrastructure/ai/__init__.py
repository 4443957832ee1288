"""AI Model Implementations.

Contains specific clients/adapters for different AI providers (OpenAI, Groq),
each implementing the `AIModel` interface from the domain layer.
"""
