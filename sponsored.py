from flask import request
from flask_restful import Resource
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import SQLAlchemyError
from model import db, Advertisement, AdMetrics, AdInteraction, AdCategory, InteractionType, User, parse_enum
from auth import get_current_user, get_optional_user
from utils import get_page_args, paginated, parse_bool, escape_like, LIKE_ESCAPE
import logging

logger = logging.getLogger(__name__)

OPTIONAL_FIELDS = ("description", "image_url", "contact_info", "location", "heritage", "offer", "cta", "link")
DEFAULT_FEED_LIMIT = 10


def _load_ad(ad_id):
    ad = db.session.get(Advertisement, ad_id)
    if not ad:
        return None, ({"message": "Advertisement not found"}, 404)
    return ad, None


class CreateAdResource(Resource):

    @jwt_required()
    def post(self):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        data = request.get_json(silent=True) or {}
        if not data.get("name"):
            return {"message": "name is required"}, 400
        if not data.get("category"):
            return {"message": "category is required"}, 400

        try:
            category = parse_enum(AdCategory, data["category"])
        except ValueError as e:
            return {"message": str(e)}, 400

        ad = Advertisement(user_id=user.id, name=data["name"], category=category)
        for field in OPTIONAL_FIELDS:
            if field in data:
                setattr(ad, field, data[field])
        if "is_active" in data:
            ad.is_active = parse_bool(data["is_active"], default=True)
        ad.metrics = AdMetrics(views=0, clicks=0, click_through_rate=None)

        try:
            db.session.add(ad)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error creating advertisement: {e}")
            return {"message": "Database error"}, 500

        logger.info(f"Advertisement {ad.id} created by user {user.id}")
        return {"message": "Advertisement created", "advertisement": ad.as_dict()}, 201


class AdListResource(Resource):

    def get(self):
        page, per_page = get_page_args()
        query = Advertisement.query

        category = request.args.get('category', type=str)
        if category:
            try:
                query = query.filter(Advertisement.category == parse_enum(AdCategory, category))
            except ValueError as e:
                return {"message": str(e)}, 400

        heritage = request.args.get('heritage', type=str)
        if heritage:
            query = query.filter(Advertisement.heritage.ilike(escape_like(heritage), escape=LIKE_ESCAPE))

        ads = query.order_by(Advertisement.created_at.desc(), Advertisement.id.desc()).paginate(
            page=page, per_page=per_page, error_out=False)
        return paginated(ads, 'advertisements', [a.as_dict() for a in ads.items]), 200


class AdResource(Resource):

    def get(self, ad_id):
        ad, error = _load_ad(ad_id)
        if error:
            return error
        return ad.as_dict(), 200

    @jwt_required()
    def put(self, ad_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        ad, error = _load_ad(ad_id)
        if error:
            return error

        if ad.user_id != user.id:
            return {"message": "You can only update your own advertisements"}, 403

        data = request.get_json(silent=True) or {}
        if "name" in data and not data["name"]:
            return {"message": "name cannot be empty"}, 400
        if "category" in data:
            try:
                ad.category = parse_enum(AdCategory, data["category"])
            except ValueError as e:
                return {"message": str(e)}, 400

        for field in ("name",) + OPTIONAL_FIELDS:
            if field in data:
                setattr(ad, field, data[field])
        if "is_active" in data:
            ad.is_active = parse_bool(data["is_active"], default=True)

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error updating advertisement {ad_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Advertisement updated", "advertisement": ad.as_dict()}, 200

    @jwt_required()
    def delete(self, ad_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        ad, error = _load_ad(ad_id)
        if error:
            return error

        if ad.user_id != user.id:
            return {"message": "You can only delete your own advertisements"}, 403

        try:
            db.session.delete(ad)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error deleting advertisement {ad_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Advertisement deleted"}, 200


class AdInteractionResource(Resource):
    """Records impressions and clicks; registered once per interaction type."""

    interaction_type = None

    def post(self, ad_id):
        user = get_optional_user()

        ad, error = _load_ad(ad_id)
        if error:
            return error

        try:
            if ad.metrics is None:
                ad.metrics = AdMetrics(views=0, clicks=0)
            db.session.add(AdInteraction(
                advertisement_id=ad.id,
                interaction_type=self.interaction_type,
                user_id=user.id if user else None
            ))
            db.session.flush()
            AdMetrics.increment(ad.metrics.id, self.interaction_type)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error recording {self.interaction_type.value} for advertisement {ad_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": f"{self.interaction_type.value} recorded", "metrics": ad.metrics.as_dict()}, 200


class AdImpressionResource(AdInteractionResource):
    interaction_type = InteractionType.IMPRESSION


class AdClickResource(AdInteractionResource):
    interaction_type = InteractionType.CLICK


class AdMetricsResource(Resource):

    def get(self, ad_id):
        ad, error = _load_ad(ad_id)
        if error:
            return error

        if ad.metrics is None:
            return {"advertisement_id": ad.id, "views": 0, "clicks": 0, "click_through_rate": None}, 200
        return ad.metrics.as_dict(), 200


class UserAdsResource(Resource):

    def get(self, user_id):
        if not db.session.get(User, user_id):
            return {"message": "User not found"}, 404

        ads = (Advertisement.query
               .filter_by(user_id=user_id)
               .order_by(Advertisement.created_at.desc(), Advertisement.id.desc())
               .all())
        return {"advertisements": [a.as_dict() for a in ads]}, 200


class SponsoredFeedResource(Resource):

    def get(self):
        """Active sponsored content; entries matching the caller's heritage come first."""
        user = get_optional_user()
        limit = request.args.get('limit', DEFAULT_FEED_LIMIT, type=int) or DEFAULT_FEED_LIMIT

        ads = (Advertisement.query
               .filter(Advertisement.is_active.is_(True))
               .order_by(Advertisement.created_at.desc(), Advertisement.id.desc())
               .all())

        heritage = {h.lower() for h in (user.heritage or []) if isinstance(h, str)} if user else set()
        if heritage:
            # sorted() is stable, so newest-first order holds within each bucket
            ads = sorted(ads, key=lambda a: 0 if (a.heritage or "").lower() in heritage else 1)

        return {"sponsored": [a.as_dict() for a in ads[:max(1, limit)]]}, 200


def register_sponsored_resources(api):
    api.add_resource(CreateAdResource, "/api/ad/create")
    api.add_resource(AdListResource, "/api/ad/all")
    api.add_resource(SponsoredFeedResource, "/api/ad/sponsored")
    api.add_resource(AdResource, "/api/ad/<int:ad_id>")
    api.add_resource(AdImpressionResource, "/api/ad/<int:ad_id>/impression")
    api.add_resource(AdClickResource, "/api/ad/<int:ad_id>/click")
    api.add_resource(AdMetricsResource, "/api/ad/<int:ad_id>/metrics")
    api.add_resource(UserAdsResource, "/api/ad/user/<int:user_id>")
