"""Properties domain - Listings, media and status history"""
