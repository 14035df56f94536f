"""Trade feed client: transport negotiation and the session control surface."""
