"""HTTP plumbing: problem+json rendering, error mapping and middleware."""
