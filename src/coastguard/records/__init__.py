"""Record models shared by the pipeline and the alert dispatch engine."""
