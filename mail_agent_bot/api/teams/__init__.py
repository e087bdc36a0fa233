"""Teams Bot Framework surface: webhook routes, adaptive cards, conversation state."""
