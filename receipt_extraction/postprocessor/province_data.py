"""
Iraqi Province Reference Data.

Static tables used by the place-name corrector and the field parser:

    - IRAQ_PROVINCES: the 18 canonical province names
    - PROVINCE_CORRECTIONS: common misspellings, transliterations and
      major-city names mapped to their canonical province
    - PROVINCE_ALIASES: per-province alternative spellings used by the
      contains-style heuristics
    - CITY_PROVINCES: major cities, scanned for in free text when no
      province label was found
"""

from typing import Dict, List, Tuple


IRAQ_PROVINCES: Tuple[str, ...] = (
    'بغداد',
    'البصرة',
    'نينوى',
    'أربيل',
    'النجف',
    'ذي قار',
    'كركوك',
    'الأنبار',
    'ديالى',
    'المثنى',
    'القادسية',
    'ميسان',
    'واسط',
    'صلاح الدين',
    'بابل',
    'كربلاء',
    'دهوك',
    'السليمانية',
)


# Latin keys are lowercase; lookups lowercase Latin input first
PROVINCE_CORRECTIONS: Dict[str, str] = {
    # بغداد
    'بغداو': 'بغداد',
    'بقداد': 'بغداد',
    'بعداد': 'بغداد',
    'بغدا': 'بغداد',
    'بغداة': 'بغداد',
    'baghdad': 'بغداد',

    # البصرة
    'بصره': 'البصرة',
    'بصرة': 'البصرة',
    'البصره': 'البصرة',
    'basra': 'البصرة',
    'basrah': 'البصرة',

    # نينوى
    'نينوي': 'نينوى',
    'نينوه': 'نينوى',
    'الموصل': 'نينوى',
    'موصل': 'نينوى',
    'nineveh': 'نينوى',
    'mosul': 'نينوى',

    # أربيل
    'اربيل': 'أربيل',
    'أربل': 'أربيل',
    'اربل': 'أربيل',
    'هولير': 'أربيل',
    'erbil': 'أربيل',
    'irbil': 'أربيل',

    # النجف
    'نجف': 'النجف',
    'النجه': 'النجف',
    'najaf': 'النجف',

    # ذي قار
    'ذيقار': 'ذي قار',
    'ذى قار': 'ذي قار',
    'الناصرية': 'ذي قار',
    'ناصريه': 'ذي قار',
    'ناصرية': 'ذي قار',
    'dhi qar': 'ذي قار',
    'thi qar': 'ذي قار',

    # كركوك
    'كركوج': 'كركوك',
    'كركك': 'كركوك',
    'التأميم': 'كركوك',
    'kirkuk': 'كركوك',

    # الأنبار
    'انبار': 'الأنبار',
    'الانبار': 'الأنبار',
    'الرمادي': 'الأنبار',
    'رمادي': 'الأنبار',
    'anbar': 'الأنبار',

    # ديالى
    'ديالي': 'ديالى',
    'ديالا': 'ديالى',
    'ديإلى': 'ديالى',
    'بعقوبة': 'ديالى',
    'diyala': 'ديالى',

    # المثنى
    'مثنى': 'المثنى',
    'السماوة': 'المثنى',
    'سماوة': 'المثنى',
    'muthanna': 'المثنى',

    # القادسية
    'قادسية': 'القادسية',
    'قادسيه': 'القادسية',
    'الديوانية': 'القادسية',
    'ديوانية': 'القادسية',
    'qadisiyah': 'القادسية',

    # ميسان
    'ميسن': 'ميسان',
    'ميثان': 'ميسان',
    'العمارة': 'ميسان',
    'عمارة': 'ميسان',
    'maysan': 'ميسان',

    # واسط
    'وسط': 'واسط',
    'واسظ': 'واسط',
    'الكوت': 'واسط',
    'كوت': 'واسط',
    'wasit': 'واسط',
    'kut': 'واسط',

    # صلاح الدين
    'صلاح': 'صلاح الدين',
    'صلاح الجين': 'صلاح الدين',
    'صلاح الدبن': 'صلاح الدين',
    'صلاحدين': 'صلاح الدين',
    'صلاة الدين': 'صلاح الدين',
    'تكريت': 'صلاح الدين',
    'salahuddin': 'صلاح الدين',
    'salah al-din': 'صلاح الدين',

    # بابل
    'بابيل': 'بابل',
    'الحلة': 'بابل',
    'حلة': 'بابل',
    'حله': 'بابل',
    'babylon': 'بابل',

    # كربلاء
    'كربله': 'كربلاء',
    'كربلا': 'كربلاء',
    'karbala': 'كربلاء',

    # دهوك
    'دهك': 'دهوك',
    'دهق': 'دهوك',
    'دهوق': 'دهوك',
    'duhok': 'دهوك',
    'dahuk': 'دهوك',

    # السليمانية
    'سليمانية': 'السليمانية',
    'سليمانيه': 'السليمانية',
    'سلیمانیة': 'السليمانية',
    'sulaymaniyah': 'السليمانية',
    'sulaymaniya': 'السليمانية',
}


# Ordered as the heuristics evaluate them
PROVINCE_ALIASES: Dict[str, List[str]] = {
    'بغداد': ['بغداد', 'بغدات', 'بقداد', 'baghdad'],
    'البصرة': ['البصرة', 'بصرة', 'البصره', 'basra'],
    'نينوى': ['نينوى', 'موصل', 'الموصل', 'نينوه', 'mosul'],
    'أربيل': ['أربيل', 'اربيل', 'erbil'],
    'النجف': ['النجف', 'نجف', 'najaf'],
    'كربلاء': ['كربلاء', 'كربلا', 'karbala'],
    'ذي قار': ['ذي قار', 'ذيقار', 'ذى قار', 'الناصرية'],
    'الأنبار': ['الأنبار', 'انبار', 'الانبار', 'الرمادي'],
    'ديالى': ['ديالى', 'ديالا', 'بعقوبة'],
    'كركوك': ['كركوك', 'التأميم'],
    'صلاح الدين': ['صلاح الدين', 'صلاحدين', 'صلاح دين', 'تكريت'],
    'بابل': ['بابل', 'الحلة', 'babylon'],
    'المثنى': ['المثنى', 'مثنى', 'السماوة'],
    'القادسية': ['القادسية', 'قادسية', 'الديوانية'],
    'واسط': ['واسط', 'الكوت', 'kut'],
    'ميسان': ['ميسان', 'العمارة'],
    'دهوك': ['دهوك', 'دهوق'],
    'السليمانية': ['السليمانية', 'سليمانية', 'سلیمانیة'],
}


CITY_PROVINCES: Dict[str, str] = {
    'الموصل': 'نينوى',
    'الناصرية': 'ذي قار',
    'الرمادي': 'الأنبار',
    'الفلوجة': 'الأنبار',
    'بعقوبة': 'ديالى',
    'تكريت': 'صلاح الدين',
    'سامراء': 'صلاح الدين',
    'الحلة': 'بابل',
    'السماوة': 'المثنى',
    'الديوانية': 'القادسية',
    'الكوت': 'واسط',
    'العمارة': 'ميسان',
    'الزبير': 'البصرة',
    'الكوفة': 'النجف',
    'زاخو': 'دهوك',
}
