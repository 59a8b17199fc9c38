GUIDE = {
    'title': 'Panel setup guide',
    'youtube_url': 'https://www.youtube.com/watch?v=dQw4w9WgXcQ',
    'category': 'tutorials',
    'duration': '12:45',
    'views': '125K views',
}


def test_create_derives_thumbnail(seller_client):
    response = seller_client.post('/api/youtube-resources', json=GUIDE)

    assert response.status_code == 201
    body = response.get_json()
    assert body['thumbnail_url'] == 'https://img.youtube.com/vi/dQw4w9WgXcQ/maxresdefault.jpg'
    assert body['owner_id'] == 'seller1'
    assert body['is_active'] is True


def test_category_must_be_known(seller_client):
    response = seller_client.post('/api/youtube-resources', json=dict(GUIDE, category='music'))

    assert response.status_code == 400
    assert 'category' in response.get_json()['errors']


def test_url_is_required(seller_client):
    response = seller_client.post('/api/youtube-resources', json=dict(GUIDE, youtube_url='not a url'))

    assert response.status_code == 400
    assert 'youtube_url' in response.get_json()['errors']


def test_public_list_hides_deleted_videos(client, seller_client):
    created = seller_client.post('/api/youtube-resources', json=GUIDE).get_json()
    seller_client.post('/api/youtube-resources', json=dict(GUIDE, title='Gameplay', category='gaming'))

    assert seller_client.delete(f"/api/youtube-resources/{created['id']}").status_code == 204

    titles = [v['title'] for v in client.get('/api/youtube-resources').get_json()]
    assert titles == ['Gameplay']
    assert client.get(f"/api/youtube-resources/{created['id']}").status_code == 404


def test_category_filter_and_search(client, seller_client):
    seller_client.post('/api/youtube-resources', json=GUIDE)
    seller_client.post('/api/youtube-resources', json=dict(GUIDE, title='Bot review', category='reviews'))

    reviews = client.get('/api/youtube-resources?category=reviews').get_json()
    found = client.get('/api/youtube-resources?search=SETUP').get_json()

    assert [v['title'] for v in reviews] == ['Bot review']
    assert [v['title'] for v in found] == ['Panel setup guide']


def test_videos_are_scoped_to_their_owner(make_user, login_as, admin_client):
    make_user('seller1')
    make_user('seller2')
    seller1, seller2 = login_as('seller1'), login_as('seller2')
    created = seller1.post('/api/youtube-resources', json=GUIDE).get_json()

    assert seller2.get('/api/admin/youtube-resources').get_json() == []
    assert seller2.put(f"/api/youtube-resources/{created['id']}", json={'title': 'x'}).status_code == 404
    assert len(admin_client.get('/api/admin/youtube-resources').get_json()) == 1
    assert seller1.get(f"/api/admin/youtube-resources/{created['id']}").status_code == 200


def test_update_rederives_thumbnail(seller_client):
    created = seller_client.post('/api/youtube-resources', json=GUIDE).get_json()

    response = seller_client.put(f"/api/youtube-resources/{created['id']}",
                                 json={'youtube_url': 'https://youtu.be/newVideo1'})

    assert response.get_json()['thumbnail_url'] == 'https://img.youtube.com/vi/newVideo1/maxresdefault.jpg'
