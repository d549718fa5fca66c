"""HTTP surface: the tool routes and usage dashboards that sit on the credit core."""
