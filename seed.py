import click
from flask.cli import with_appcontext
from sqlalchemy.exc import SQLAlchemyError
from model import db, Activity, ActivityCategory, SkillLevel, Advertisement, AdMetrics, AdCategory
import logging

logger = logging.getLogger(__name__)

ACTIVITIES = [
    {"name": "Basketball", "category": "sports", "icon": "🏀",
     "description": "Play basketball at local courts or gyms",
     "equipment": ["Basketball"], "transportation": True, "indoor": True, "outdoor": True,
     "max_participants": 10, "duration": 120},
    {"name": "Soccer", "category": "sports", "icon": "⚽",
     "description": "Play soccer at local fields or parks",
     "equipment": ["Soccer ball", "Cleats"], "transportation": True, "indoor": False, "outdoor": True,
     "max_participants": 22, "duration": 90},
    {"name": "Hiking", "category": "outdoor", "icon": "🥾",
     "description": "Explore local trails and nature areas",
     "equipment": ["Hiking boots", "Backpack", "Water bottle"], "transportation": True, "indoor": False,
     "outdoor": True, "max_participants": 8, "duration": 180},
    {"name": "Yoga", "category": "fitness", "icon": "🧘",
     "description": "Practice yoga together, suitable for all levels",
     "equipment": ["Yoga mat"], "transportation": False, "indoor": True, "outdoor": True,
     "max_participants": 6, "duration": 60},
    {"name": "Food Bank Volunteering", "category": "volunteering", "icon": "🥫",
     "description": "Help sort food and prepare meals at local food banks",
     "equipment": [], "transportation": True, "indoor": True, "outdoor": False,
     "max_participants": 10, "duration": 180},
    {"name": "Board Games", "category": "social", "icon": "🎲",
     "description": "Play board games, card games, and tabletop games",
     "equipment": ["Board games"], "transportation": False, "indoor": True, "outdoor": False,
     "max_participants": 8, "duration": 180},
    {"name": "Cultural Cooking", "category": "cultural", "icon": "👨‍🍳",
     "description": "Cook and share dishes from your cultural background",
     "equipment": ["Cooking ingredients", "Cooking utensils"], "transportation": False, "indoor": True,
     "outdoor": False, "max_participants": 6, "duration": 180},
    {"name": "Language Exchange", "category": "cultural", "icon": "🗣️",
     "description": "Practice speaking different languages with native speakers",
     "equipment": [], "transportation": False, "indoor": True, "outdoor": True,
     "max_participants": 10, "duration": 120},
    {"name": "Photography Walk", "category": "hobby", "icon": "📸",
     "description": "Explore the area and take photos together",
     "equipment": ["Camera or smartphone"], "transportation": True, "indoor": False, "outdoor": True,
     "max_participants": 8, "duration": 180},
    {"name": "Running Group", "category": "fitness", "icon": "🏃",
     "description": "Go for runs together at various paces",
     "equipment": ["Running shoes"], "transportation": False, "indoor": False, "outdoor": True,
     "max_participants": 10, "duration": 60},
    {"name": "Tennis", "category": "sports", "icon": "🎾",
     "description": "Play tennis at local courts",
     "equipment": ["Tennis racket", "Tennis balls"], "transportation": True, "indoor": True, "outdoor": True,
     "max_participants": 4, "duration": 120},
    {"name": "Swimming", "category": "fitness", "icon": "🏊",
     "description": "Swim laps or enjoy recreational swimming",
     "equipment": ["Swimsuit", "Goggles"], "transportation": True, "indoor": True, "outdoor": True,
     "max_participants": 6, "duration": 90},
]

SPONSORED_CONTENT = [
    {"name": "Maharaja Palace", "category": "Food", "heritage": "Indian",
     "description": "Experience traditional flavors from across India with our tandoor specialties, "
                    "biryanis, and fresh naan bread.",
     "image_url": "https://images.pexels.com/photos/1640777/pexels-photo-1640777.jpeg?auto=compress&cs=tinysrgb&w=400",
     "contact_info": "(612) 555-0123", "location": {"name": "Downtown Minneapolis"},
     "offer": "20% Student Discount", "cta": "View Menu"},
    {"name": "Asian Art Festival", "category": "Events", "heritage": "Asian",
     "description": "Explore stunning artworks from emerging Asian artists featuring calligraphy, "
                    "paintings, and sculptures.",
     "image_url": "https://images.pexels.com/photos/1839919/pexels-photo-1839919.jpeg?auto=compress&cs=tinysrgb&w=400",
     "contact_info": "(612) 375-7600", "location": {"name": "Walker Art Center"},
     "offer": "Free Student Entry", "cta": "Get Tickets"},
    {"name": "Tacos El Sol", "category": "Food", "heritage": "Mexican",
     "description": "Authentic Mexican flavors with fresh ingredients, handmade tortillas, and "
                    "traditional recipes passed down through generations.",
     "image_url": "https://images.pexels.com/photos/2097090/pexels-photo-2097090.jpeg?auto=compress&cs=tinysrgb&w=400",
     "contact_info": "(612) 555-0456", "location": {"name": "West Bank"},
     "offer": "Free Guacamole on Tuesdays", "cta": "Order Now"},
    {"name": "African Drum Circle", "category": "Events", "heritage": "African",
     "description": "Join our weekly drum circle featuring traditional African rhythms, dance "
                    "performances, and cultural storytelling.",
     "image_url": "https://images.pexels.com/photos/1382731/pexels-photo-1382731.jpeg?auto=compress&cs=tinysrgb&w=400",
     "contact_info": "(612) 555-0789", "location": {"name": "Northrop Mall"},
     "offer": "Drums Provided", "cta": "Join Circle"},
    {"name": "Pho Saigon", "category": "Food", "heritage": "Vietnamese",
     "description": "Warm bowls of pho, fresh spring rolls, and authentic Vietnamese dishes made "
                    "with love and traditional recipes.",
     "image_url": "https://images.pexels.com/photos/3026808/pexels-photo-3026808.jpeg?auto=compress&cs=tinysrgb&w=400",
     "contact_info": "(612) 555-0321", "location": {"name": "Dinkytown"},
     "offer": "Student Lunch Special", "cta": "View Menu"},
    {"name": "Middle Eastern Film Festival", "category": "Events", "heritage": "Middle Eastern",
     "description": "A week-long celebration of Middle Eastern cinema featuring award-winning films, "
                    "director Q&As, and cultural discussions.",
     "image_url": "https://images.pexels.com/photos/7991579/pexels-photo-7991579.jpeg?auto=compress&cs=tinysrgb&w=400",
     "contact_info": "(612) 555-0654", "location": {"name": "Bell Museum"},
     "offer": "Festival Pass Available", "cta": "Get Pass"},
]


def seed_activities():
    """Seed the activity catalogue; skipped when activities already exist."""
    try:
        existing_count = Activity.query.count()
        if existing_count > 0:
            logger.info(f"ℹ️ Found {existing_count} activities, skipping seeding.")
            return 0

        for item in ACTIVITIES:
            data = dict(item)
            data["category"] = ActivityCategory(data["category"])
            db.session.add(Activity(skill_level=SkillLevel.BEGINNER, **data))
        db.session.commit()
        logger.info(f"✅ Seeded {len(ACTIVITIES)} activities.")
        return len(ACTIVITIES)
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"❌ Activity seeding failed: {e}")
        raise


def seed_sponsored_content():
    """Seed the sponsored feed; skipped when advertisements already exist."""
    try:
        existing_count = Advertisement.query.count()
        if existing_count > 0:
            logger.info(f"ℹ️ Found {existing_count} advertisements, skipping seeding.")
            return 0

        for item in SPONSORED_CONTENT:
            data = dict(item)
            data["category"] = AdCategory(data["category"])
            ad = Advertisement(is_active=True, **data)
            ad.metrics = AdMetrics(views=0, clicks=0)
            db.session.add(ad)
        db.session.commit()
        logger.info(f"✅ Seeded {len(SPONSORED_CONTENT)} sponsored entries.")
        return len(SPONSORED_CONTENT)
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"❌ Sponsored content seeding failed: {e}")
        raise


@click.command("seed")
@with_appcontext
def seed_command():
    """Seed activities and sponsored content."""
    db.create_all()
    activities = seed_activities()
    ads = seed_sponsored_content()
    click.echo(f"Seeded {activities} activities and {ads} sponsored entries.")
