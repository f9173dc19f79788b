"""fndeploy: reconcile a serverless function definition against the live service."""
