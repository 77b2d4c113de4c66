"""Request language detection and localized API messages."""

from flask import request, current_app

SUPPORTED_LANGUAGES = ('en', 'ar')

MESSAGES = {
    'en': {
        'validation_failed': 'Validation failed',
        'invalid_id': 'Invalid id',
        'missing_fields': 'Missing required fields: {fields}',
        'invalid_rating': 'Rating must be an integer between 1 and 5',
        'invalid_status': 'Invalid status value',
        'invalid_email': 'Email is already in use',
        'listing_not_found': 'Listing not found',
        'booking_not_found': 'Booking not found',
        'review_not_found': 'Review not found',
        'notification_not_found': 'Notification not found',
        'user_not_found': 'User not found',
        'category_not_found': 'Category not found',
        'not_booking_owner': 'You can only review your own bookings',
        'booking_not_reviewable': 'Booking must be confirmed before it can be reviewed',
        'booking_not_paid': 'Booking must be paid before it can be reviewed',
        'review_exists': 'This booking has already been reviewed',
        'not_review_owner': 'You can only modify your own reviews',
        'not_notification_owner': 'You can only access your own notifications',
        'listing_created': 'Listing created successfully',
        'listing_updated': 'Listing updated successfully',
        'listing_deleted': 'Listing deleted successfully',
        'booking_created': 'Booking created successfully',
        'booking_updated': 'Booking updated successfully',
        'booking_deleted': 'Booking deleted successfully',
        'review_created': 'Review submitted successfully',
        'review_updated': 'Review updated successfully',
        'review_deleted': 'Review deleted successfully',
        'notification_created': 'Notification created successfully',
        'notifications_marked_read': 'Notifications marked as read',
        'notification_deleted': 'Notification deleted successfully',
        'user_created': 'User created successfully',
        'user_updated': 'User updated successfully',
        'user_deleted': 'User deleted successfully',
        'invalid_credentials': 'Invalid email or password',
        'category_created': 'Category created successfully',
        'category_updated': 'Category updated successfully',
        'category_deleted': 'Category deleted successfully',
        'no_exact_matches': 'No exact matches found, showing similar listings',
    },
    'ar': {
        'validation_failed': 'فشل التحقق من البيانات',
        'invalid_id': 'معرّف غير صالح',
        'missing_fields': 'حقول مطلوبة مفقودة: {fields}',
        'invalid_rating': 'يجب أن يكون التقييم رقمًا صحيحًا بين 1 و 5',
        'invalid_status': 'قيمة الحالة غير صالحة',
        'invalid_email': 'البريد الإلكتروني مستخدم بالفعل',
        'listing_not_found': 'القائمة غير موجودة',
        'booking_not_found': 'الحجز غير موجود',
        'review_not_found': 'التقييم غير موجود',
        'notification_not_found': 'الإشعار غير موجود',
        'user_not_found': 'المستخدم غير موجود',
        'category_not_found': 'الفئة غير موجودة',
        'not_booking_owner': 'يمكنك تقييم حجوزاتك فقط',
        'booking_not_reviewable': 'يجب تأكيد الحجز قبل تقييمه',
        'booking_not_paid': 'يجب دفع قيمة الحجز قبل تقييمه',
        'review_exists': 'تم تقييم هذا الحجز مسبقًا',
        'not_review_owner': 'يمكنك تعديل تقييماتك فقط',
        'not_notification_owner': 'يمكنك الوصول إلى إشعاراتك فقط',
        'listing_created': 'تم إنشاء القائمة بنجاح',
        'listing_updated': 'تم تحديث القائمة بنجاح',
        'listing_deleted': 'تم حذف القائمة بنجاح',
        'booking_created': 'تم إنشاء الحجز بنجاح',
        'booking_updated': 'تم تحديث الحجز بنجاح',
        'booking_deleted': 'تم حذف الحجز بنجاح',
        'review_created': 'تم إرسال التقييم بنجاح',
        'review_updated': 'تم تحديث التقييم بنجاح',
        'review_deleted': 'تم حذف التقييم بنجاح',
        'notification_created': 'تم إنشاء الإشعار بنجاح',
        'notifications_marked_read': 'تم تعليم الإشعارات كمقروءة',
        'notification_deleted': 'تم حذف الإشعار بنجاح',
        'user_created': 'تم إنشاء المستخدم بنجاح',
        'user_updated': 'تم تحديث المستخدم بنجاح',
        'user_deleted': 'تم حذف المستخدم بنجاح',
        'invalid_credentials': 'البريد الإلكتروني أو كلمة المرور غير صحيحة',
        'category_created': 'تم إنشاء الفئة بنجاح',
        'category_updated': 'تم تحديث الفئة بنجاح',
        'category_deleted': 'تم حذف الفئة بنجاح',
        'no_exact_matches': 'لم يتم العثور على نتائج مطابقة، نعرض قوائم مشابهة',
    },
}


def normalize_lang(lang) -> str:
    """Map any language tag onto a supported language, defaulting to English."""
    if not lang:
        return 'en'
    code = str(lang).strip().lower().replace('_', '-').split('-')[0]
    return code if code in SUPPORTED_LANGUAGES else 'en'


def get_language() -> str:
    """Language of the current request: ?lang= first, then Accept-Language."""
    lang = request.args.get('lang')
    if lang:
        return normalize_lang(lang)
    best = request.accept_languages.best_match(SUPPORTED_LANGUAGES)
    return best or current_app.config.get('SOURCE_LANGUAGE', 'en')


def translate_message(key: str, lang: str = 'en', **params) -> str:
    catalog = MESSAGES.get(normalize_lang(lang), MESSAGES['en'])
    template = catalog.get(key) or MESSAGES['en'].get(key, key)
    return template.format(**params) if params else template
