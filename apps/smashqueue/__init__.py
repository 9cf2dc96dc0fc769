"""SmashQueue court queue and match lifecycle engine."""
