"""Retailer-restricted moodboard curation: plan queries, search images, filter, score and diversify."""
