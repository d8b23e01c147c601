"""PAI seed learning pipeline: transcript extraction and learning retrieval."""
